"""
Adapters — the only code that touches the host.
"""

from vpsforge.adapters.base import Adapter, ExecutionContext
from vpsforge.adapters.mock import MockAdapter
from vpsforge.adapters.registry import AdapterRegistry, build_default_registry

__all__ = [
    "Adapter",
    "AdapterRegistry",
    "ExecutionContext",
    "MockAdapter",
    "build_default_registry",
]
