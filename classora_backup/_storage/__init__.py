"""Storage module with lazy loading support."""

from typing import TYPE_CHECKING

# Always import factory and registration (lightweight)
from .factory import StorageFactory, _register_backends

if TYPE_CHECKING:
    from .kv_json import JsonKVStorage
    from .kv_redis import RedisKVStorage


def __getattr__(name):
    """Lazy import storage backends so redis is only loaded when used."""
    if name == "JsonKVStorage":
        from .kv_json import JsonKVStorage
        return JsonKVStorage
    elif name == "RedisKVStorage":
        from .kv_redis import RedisKVStorage
        return RedisKVStorage
    else:
        raise AttributeError(f"module '{__name__}' has no attribute '{name}'")


__all__ = [
    "StorageFactory",
    "_register_backends",
    "JsonKVStorage",
    "RedisKVStorage",
]
