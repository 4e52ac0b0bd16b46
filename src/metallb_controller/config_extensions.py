"""oslo.config options for embedding the reconcilers in an oslo service.

The standalone operator reads its settings from YAML (see
``metallb_operator.config``).  Services that already use oslo.config register
these options instead and build the same settings object from them.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Optional

from oslo_config import cfg

from metallb_config.consts import (
    CONFIGMAP_KEY,
    CONFIGMAP_NAME,
    DEFAULT_NAMESPACE,
    METALLB_RESOURCE_NAME,
    NAMESPACE_ENV_VAR,
)

GROUP_NAME = "metallb"

metallb_group = cfg.OptGroup(
    name=GROUP_NAME,
    title="MetalLB reconciler options",
)

controller_opts = [
    cfg.StrOpt('namespace',
               default=None,
               help='Namespace holding the MetalLB resources. Defaults to the '
                    'OO_INSTALL_NAMESPACE environment variable, then '
                    'metallb-system.'),
    cfg.StrOpt('metallb_name',
               default=METALLB_RESOURCE_NAME,
               help='The only MetalLB resource name that is reconciled.'),
    cfg.StrOpt('configmap_name',
               default=CONFIGMAP_NAME,
               help='Name of the ConfigMap holding the merged configuration.'),
    cfg.StrOpt('configmap_key',
               default=CONFIGMAP_KEY,
               help='Data key of the merged configuration in the ConfigMap.'),
    cfg.IntOpt('workers',
               default=2,
               min=1,
               help='Number of reconcile worker threads.'),
    cfg.FloatOpt('resync_interval',
                 default=300.0,
                 help='Seconds between periodic resyncs. 0 disables resync.'),
    cfg.IntOpt('max_conflict_retries',
               default=5,
               min=0,
               help='Reconcile restarts allowed on version conflicts before '
                    'the key is requeued.'),
]


@dataclass(frozen=True)
class ControllerSettings:
    namespace: str
    metallb_name: str = METALLB_RESOURCE_NAME
    configmap_name: str = CONFIGMAP_NAME
    configmap_key: str = CONFIGMAP_KEY
    workers: int = 2
    resync_interval: Optional[float] = 300.0
    max_conflict_retries: int = 5


def default_namespace() -> str:
    return os.environ.get(NAMESPACE_ENV_VAR) or DEFAULT_NAMESPACE


def register_controller_opts(conf: cfg.ConfigOpts = cfg.CONF) -> None:
    """Register the reconciler options under the ``[metallb]`` group."""

    conf.register_group(metallb_group)
    conf.register_opts(controller_opts, group=metallb_group)


def settings_from_conf(conf: cfg.ConfigOpts = cfg.CONF) -> ControllerSettings:
    group = conf[GROUP_NAME]
    return ControllerSettings(
        namespace=group.namespace or default_namespace(),
        metallb_name=group.metallb_name,
        configmap_name=group.configmap_name,
        configmap_key=group.configmap_key,
        workers=group.workers,
        resync_interval=group.resync_interval or None,
        max_conflict_retries=group.max_conflict_retries,
    )
