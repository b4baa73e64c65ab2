from __future__ import annotations

from .base import BaseExtractor

# Global in-process registry: kind -> extractor class
_REGISTRY: dict[str, type[BaseExtractor]] = {}


def register(cls: type[BaseExtractor]) -> type[BaseExtractor]:
    """
    Class decorator or direct call to register an extractor class.
    Requires cls.kind to be a non-empty string.
    """
    kind = getattr(cls, "kind", "") or ""
    if not isinstance(kind, str) or not kind.strip():
        raise ValueError(f"Cannot register extractor {cls!r}: missing/empty 'kind'.")
    key = kind.strip().lower()
    if key in _REGISTRY and _REGISTRY[key] is not cls:
        raise ValueError(f"Extractor kind {key!r} already registered to {_REGISTRY[key]!r}.")
    _REGISTRY[key] = cls
    return cls


def get(kind: str) -> type[BaseExtractor]:
    """
    Look up an extractor class by kind (case-insensitive).
    Raises KeyError if not found.
    """
    key = (kind or "").strip().lower()
    if key not in _REGISTRY:
        raise KeyError(f"No extractor registered for kind {kind!r}.")
    return _REGISTRY[key]


def all_kinds() -> dict[str, type[BaseExtractor]]:
    """Shallow copy of the registry (useful for the CLI and tests)."""
    return dict(_REGISTRY)
