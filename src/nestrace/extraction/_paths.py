"""Defensive access into provider-specific nested payloads."""

from __future__ import annotations

from typing import Any, Mapping, Sequence

_MISSING = object()


def dig(obj: Any, *path: str | int) -> Any:
    """Follow ``path`` through mappings, sequences and attributes.

    String keys look up mapping entries first, then attributes. Integer
    keys index sequences (strings excluded). Returns None as soon as any
    level is absent.
    """
    current = obj
    for key in path:
        if current is None:
            return None
        if isinstance(key, int):
            if isinstance(current, Sequence) and not isinstance(current, (str, bytes)):
                if -len(current) <= key < len(current):
                    current = current[key]
                    continue
            return None
        if isinstance(current, Mapping):
            current = current.get(key)
            continue
        value = getattr(current, key, _MISSING)
        if value is _MISSING:
            return None
        current = value
    return current


def first_int(mapping: Any, *keys: str) -> int | None:
    """First key of ``mapping`` holding an int-like value, else None."""
    for key in keys:
        value = dig(mapping, key)
        if value is None or isinstance(value, bool):
            continue
        try:
            return int(value)
        except (TypeError, ValueError):
            continue
    return None


def as_list(value: Any) -> list | None:
    """Return ``value`` as a list when it is a non-string sequence."""
    if isinstance(value, Sequence) and not isinstance(value, (str, bytes)):
        return list(value)
    return None
