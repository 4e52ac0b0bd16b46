"""Error taxonomy shared by the store, the dispatcher and the reconcilers."""

from __future__ import annotations


class ControllerError(Exception):
    """Base class for every error raised by the controller runtime."""


class TransientError(ControllerError):
    """The operation may succeed if retried; the key is requeued."""


class ConflictError(TransientError):
    """A write carried a stale resource version."""

    def __init__(self, kind: str, namespace: str, name: str, message: str = "") -> None:
        self.kind = kind
        self.namespace = namespace
        self.name = name
        super().__init__(
            message or f"{kind} {namespace}/{name} was modified concurrently"
        )


class AlreadyExistsError(ConflictError):
    """A create raced with another writer that created the same object."""

    def __init__(self, kind: str, namespace: str, name: str) -> None:
        super().__init__(
            kind, namespace, name, f"{kind} {namespace}/{name} already exists"
        )


class StoreUnavailableError(TransientError):
    """The resource store could not be reached."""


class NotFoundError(ControllerError):
    def __init__(self, kind: str, namespace: str, name: str) -> None:
        self.kind = kind
        self.namespace = namespace
        self.name = name
        super().__init__(f"{kind} {namespace}/{name} not found")


class KindNotRegisteredError(ControllerError):
    """The store does not serve the requested kind. Not retryable."""

    def __init__(self, kind: str) -> None:
        self.kind = kind
        super().__init__(f"resource kind '{kind}' is not registered with the store")


class DecodeError(ControllerError):
    """A stored object or artifact could not be decoded."""


class InvalidAddressPoolError(DecodeError):
    def __init__(self, name: str, reason: str) -> None:
        self.name = name
        self.reason = reason
        super().__init__(f"invalid AddressPool '{name}': {reason}")


class ConfigParseError(DecodeError):
    """The merged configuration text is not a valid address-pool document."""
