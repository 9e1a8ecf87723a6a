"""Dot-path access into session documents.

    get_nested(doc, "input.date")         -> value or MISSING
    set_nested(doc, "a.b.c", 5)           -> creates "a" and "b" as needed
    append_to_collection(doc, "lifelines", item)
"""

from typing import Any


class _Missing:
    """Absent-marker returned by get_nested for unresolvable paths."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "MISSING"


MISSING: Any = _Missing()


def split_path(path: str) -> list[str]:
    segments = path.split(".")
    if not path or any(not s for s in segments):
        raise ValueError(f"Invalid document path: {path!r}")
    return segments


def get_nested(document: Any, path: str) -> Any:
    """Return the value at a dot path, or MISSING.

    Never raises for unknown segments, null intermediates or intermediates
    that are not mappings. A stored None is returned as None.
    """
    current = document
    for key in split_path(path):
        if not isinstance(current, dict) or key not in current:
            return MISSING
        current = current[key]
    return current


def set_nested(document: dict, path: str, value: Any) -> None:
    """Set the value at a dot path, creating intermediate dicts.

    An intermediate that exists but is not a dict is replaced by a dict.
    """
    *parents, last = split_path(path)
    current = document
    for key in parents:
        child = current.get(key)
        if not isinstance(child, dict):
            child = {}
            current[key] = child
        current = child
    current[last] = value


def append_to_collection(document: dict, name: str, item: Any) -> None:
    """Append an item to a top-level collection, initializing it to []."""
    collection = document.get(name)
    if not isinstance(collection, list):
        collection = []
        document[name] = collection
    collection.append(item)


def latest(document: dict, name: str) -> Any:
    """Last item of a collection, or None when empty/absent."""
    collection = document.get(name)
    if isinstance(collection, list) and collection:
        return collection[-1]
    return None
