"""
Listing views over the resource library.

``list_all`` backs the paginated ``/load-all`` endpoint: it flattens
every category into one sequence, applies the optional search and
category filters, sorts, slices one page and regroups that page by
category. ``search_all`` returns the whole library in the same grouped
shape so that clients can build their own search index.

Both functions read a snapshot of the store and never mutate it.
"""

from __future__ import annotations

import math
import secrets
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Literal, Optional, Tuple

from .schemas import Pagination, PaginatedResources
from .store import CategoryStore

SortField = Literal["title", "createdAt", "updatedAt"]
SortOrder = Literal["asc", "desc"]

Grouped = Dict[str, Dict[str, Dict[str, Any]]]


@dataclass
class ListOptions:
    page: int = 1
    limit: int = 12
    sort_by: SortField = "updatedAt"
    sort_order: SortOrder = "desc"
    category: Optional[str] = None
    search: Optional[str] = None


def _norm(s: Optional[str]) -> str:
    """Lowercase and strip, treating ``None`` as the empty string."""
    return (s or "").strip().lower()


def _fallback_id(record: Dict[str, Any]) -> str:
    # Records without an id get an ad-hoc one; a random token makes
    # pagination unstable across calls for such records.
    value = record.get("id") or record.get("_id") or record.get("title")
    return str(value) if value else secrets.token_hex(6)


def _flatten(snapshot: Dict[str, List[Dict[str, Any]]], category: Optional[str] = None) -> List[Dict[str, Any]]:
    items: List[Dict[str, Any]] = []
    for owner, records in snapshot.items():
        if category and owner != category:
            continue
        for record in records:
            items.append({**record, "category": owner, "id": _fallback_id(record)})
    return items


def _join_terms(value: Any) -> str:
    if isinstance(value, list):
        return " ".join(str(v) for v in value)
    return ""


def _search_blob(record: Dict[str, Any]) -> str:
    parts = [
        str(record.get("title") or ""),
        str(record.get("description") or ""),
        str(record.get("content") or ""),
        _join_terms(record.get("tags")),
        _join_terms(record.get("keywords")),
    ]
    return " ".join(parts).lower()


def timestamp_millis(value: Any) -> float:
    """Parse an ISO-8601 timestamp into epoch milliseconds (0 when unusable)."""
    if not value or not isinstance(value, str):
        return 0.0
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return 0.0
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.timestamp() * 1000


def _sort_key(sort_by: str):
    if sort_by == "title":
        return lambda r: str(r.get("title") or "").lower()
    if sort_by == "createdAt":
        return lambda r: timestamp_millis(r.get("createdAt"))
    return lambda r: timestamp_millis(r.get("updatedAt"))


def _group(items: Iterable[Dict[str, Any]]) -> Grouped:
    grouped: Grouped = {}
    for item in items:
        record = dict(item)
        category = record.pop("category", None) or "unknown"
        grouped.setdefault(category, {})[record["id"]] = record
    return grouped


def list_all(store: CategoryStore, options: Optional[ListOptions] = None) -> PaginatedResources:
    """Return one page of resources, grouped by category.

    Parameters
    ----------
    store : CategoryStore
        The library to read.
    options : Optional[ListOptions]
        Paging, sorting and filtering. Page and limit below 1 are raised
        to 1; a page past the end is clamped to the last page.

    Returns
    -------
    PaginatedResources
        The page of resources keyed by category then id, and the
        pagination metadata computed after filtering.
    """
    options = options or ListOptions()
    limit = max(1, int(options.limit))
    page = max(1, int(options.page))

    items = _flatten(store.snapshot(), options.category)

    term = _norm(options.search)
    if term:
        items = [r for r in items if term in _search_blob(r)]

    # list.sort is stable, also with reverse=True.
    items.sort(key=_sort_key(options.sort_by), reverse=options.sort_order != "asc")

    total = len(items)
    total_pages = max(math.ceil(total / limit), 1)
    page = min(page, total_pages)
    start = (page - 1) * limit
    page_items = items[start:start + limit]

    return PaginatedResources(
        resources=_group(page_items),
        pagination=Pagination(
            current_page=page,
            items_per_page=limit,
            total_items=total,
            total_pages=total_pages,
            has_prev_page=page > 1,
            has_next_page=page < total_pages,
        ),
    )


def search_all(store: CategoryStore) -> Tuple[Grouped, int]:
    """Return every resource grouped by category, plus the total count."""
    items = _flatten(store.snapshot())
    return _group(items), len(items)
