from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence

import numpy as np
import pandas as pd

from resource_kit.services.selection_store import TRANSIENT_ITEM_KEYS

Item = Dict[str, Any]

SORT_DESC = "desc"


@dataclass(frozen=True)
class StaticQueryResult:
    """
    Outcome of running the static pipeline over an in-memory collection.

    - items: the requested page
    - match_count: number of items that survived the search, before sorting/paginating
    - has_results: False when a non-empty search matched nothing (items then fall back to everything)
    """
    items: List[Item]
    match_count: int
    has_results: bool


def _search_text(value: Any) -> str:
    if value is None or (isinstance(value, float) and math.isnan(value)):
        return ""
    return str(value)


def _default_search_fields(items: Sequence[Item]) -> List[str]:
    fields: Dict[str, None] = {}
    for item in items:
        for key in item:
            if key not in TRANSIENT_ITEM_KEYS:
                fields.setdefault(key)
    return list(fields)


def search_items(items: Sequence[Item], query: Any, search_fields: Optional[Sequence[str]] = None):
    """
    Case-insensitive substring search of `query` across `search_fields`
    (every field present on the items when not given).

    :return: (matches, has_results). An empty query matches everything.
        A non-empty query with no match returns every item and has_results=False.
    """
    text = _search_text(query).strip()
    if not text:
        return list(items), True
    if not items:
        return [], False

    fields = list(dict.fromkeys(search_fields or _default_search_fields(items)))
    frame = pd.DataFrame([{f: item.get(f) for f in fields} for item in items], columns=fields, dtype=object)

    mask = np.zeros(len(items), dtype=bool)
    for field in fields:
        column = frame[field].map(_search_text)
        mask |= column.str.contains(text, case=False, regex=False).to_numpy(dtype=bool)

    if not mask.any():
        return list(items), False
    return [item for item, keep in zip(items, mask) if keep], True


def sort_items(items: Sequence[Item], sort_by: Optional[str], direction: Optional[str] = None) -> List[Item]:
    """
    Stable sort by `sort_by`. Columns whose present values are all numeric sort
    numerically, anything else sorts as case-insensitive text. Missing values go last.
    """
    if not sort_by or not items:
        return list(items)

    column = pd.Series([item.get(sort_by) for item in items], dtype=object)
    numeric = pd.to_numeric(column, errors="coerce")
    if numeric.notna().sum() == column.notna().sum():
        key = numeric
    else:
        key = column.map(lambda v: None if v is None else str(v).lower())

    order = key.sort_values(
        ascending=str(direction).lower() != SORT_DESC,
        kind="mergesort",
        na_position="last",
    ).index
    return [items[i] for i in order]


def paginate_items(items: Sequence[Item], page: int, per_page: int) -> List[Item]:
    """1-based page of `per_page` items; per_page <= 0 disables pagination."""
    if per_page <= 0:
        return list(items)
    start = (max(page, 1) - 1) * per_page
    return list(items[start:start + per_page])


def run_static_query(
    items: Sequence[Item],
    *,
    search: Any = None,
    search_fields: Optional[Sequence[str]] = None,
    sort_by: Optional[str] = None,
    sort_dir: Optional[str] = None,
    page: int = 1,
    per_page: int = 0,
) -> StaticQueryResult:
    """Filter -> sort -> paginate. Deterministic for the same inputs."""
    matches, has_results = search_items(items, search, search_fields)
    ordered = sort_items(matches, sort_by, sort_dir)
    return StaticQueryResult(
        items=paginate_items(ordered, page, per_page),
        match_count=len(matches),
        has_results=has_results,
    )
