"""MetalLB operator runtime helpers."""

from .config import OperatorConfig, load_config  # noqa: F401
from .runtime import OperatorRuntime, build_runtime  # noqa: F401

__all__ = [
    "OperatorConfig",
    "OperatorRuntime",
    "build_runtime",
    "load_config",
]
