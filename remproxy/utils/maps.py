"""Dictionary helpers."""

from __future__ import annotations

from typing import Mapping, Optional


def merge_maps(
    map1: Optional[Mapping[str, str]], map2: Optional[Mapping[str, str]]
) -> dict[str, str]:
    """Return a new dict of both mappings; keys of ``map2`` win."""
    merged: dict[str, str] = {}
    merged.update(map1 or {})
    merged.update(map2 or {})
    return merged