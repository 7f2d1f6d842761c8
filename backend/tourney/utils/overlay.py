"""
Keyed overlay merge for persisted per-match metadata.

Regenerated bracket structure and persisted overlays share one key space
(pairKey for group matches). Layers are merged field-by-field; later layers
win, unknown fields are carried through untouched.
"""
from typing import Any, Dict, Mapping, Optional

Overlay = Dict[str, Dict[str, Any]]


def merge_overlays(*layers: Optional[Mapping[str, Mapping[str, Any]]]) -> Overlay:
    """
    Union of all keys across layers, each entry merged left-to-right.

    >>> merge_overlays({"0-0": {"date": "2024-06-01", "s1": 11}}, {"0-0": {"date": "2024-06-02"}})
    {'0-0': {'date': '2024-06-02', 's1': 11}}
    """
    merged: Overlay = {}
    for layer in layers:
        if not layer:
            continue
        for key, fields in layer.items():
            entry = merged.setdefault(str(key), {})
            if isinstance(fields, Mapping):
                entry.update(fields)
    return merged


def set_overlay_field(overlay: Mapping[str, Mapping[str, Any]], key: str, field: str, value: Any) -> Overlay:
    """Return a copy of overlay with a single field of one entry replaced."""
    updated = merge_overlays(overlay)
    updated.setdefault(key, {})[field] = value
    return updated
