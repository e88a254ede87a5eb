from __future__ import annotations

from .base import SourceAdapter

# Global in-process registry: platform value -> adapter
_REGISTRY: dict[str, SourceAdapter] = {}


def register(adapter: SourceAdapter) -> SourceAdapter:
    """
    Register an adapter under its platform value.
    Re-registering the same adapter is a no-op; a different one is rejected.
    """
    key = adapter.platform.value
    if key in _REGISTRY and _REGISTRY[key] is not adapter:
        raise ValueError(f"Adapter for {key!r} already registered to {_REGISTRY[key]!r}.")
    _REGISTRY[key] = adapter
    return adapter


def get(platform: object) -> SourceAdapter:
    """
    Look up an adapter by platform (enum or string, case-insensitive).
    Raises KeyError if not found.
    """
    key = str(getattr(platform, "value", platform) or "").strip().lower()
    if key not in _REGISTRY:
        raise KeyError(f"No adapter registered for platform {platform!r}.")
    return _REGISTRY[key]


def all_platforms() -> dict[str, SourceAdapter]:
    """
    Return a shallow copy of the registry (useful for debugging/tests).
    """
    return dict(_REGISTRY)
