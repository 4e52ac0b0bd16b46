"""Well-known names shared by the reconcilers."""

KIND_ADDRESS_POOL = "AddressPool"
KIND_METALLB = "MetalLB"
KIND_CONFIGMAP = "ConfigMap"

ALL_KINDS = (KIND_ADDRESS_POOL, KIND_METALLB, KIND_CONFIGMAP)

DEFAULT_NAMESPACE = "metallb-system"
NAMESPACE_ENV_VAR = "OO_INSTALL_NAMESPACE"

# The only MetalLB resource name the operator acts on.
METALLB_RESOURCE_NAME = "metallb"

CONFIGMAP_NAME = "config"
CONFIGMAP_KEY = "config"

# Top-level key of the merged configuration document.
ADDRESS_POOLS_KEY = "address-pools"
