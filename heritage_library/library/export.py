"""
Rendering of resources as downloadable files (json, csv or txt).
"""

from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional, Tuple, Union

from .errors import ResourceValidationError
from .schemas import BatchRef
from .store import CategoryStore, Record

CONTENT_TYPES = {
    "json": "application/json",
    "csv": "text/csv",
    "txt": "text/plain",
}


def collect_for_export(
    store: CategoryStore, refs: Iterable[Union[BatchRef, Dict[str, Any]]]
) -> Tuple[List[Record], List[Dict[str, Any]]]:
    """Look up every reference, returning found records and failures."""
    records: List[Record] = []
    failed: List[Dict[str, Any]] = []
    for ref in refs:
        ref = BatchRef.model_validate(ref)
        record = store.find(ref.category or "", ref.id or "")
        if record is None:
            failed.append({"category": ref.category, "id": ref.id, "error": "resource not found"})
            continue
        records.append(record)
    return records, failed


def _is_scalar(value: Any) -> bool:
    return value is None or isinstance(value, (str, int, float, bool))


def _csv_columns(first: Record) -> List[str]:
    # Nested objects (and lists of them, like ``media``) have no column.
    return [
        key
        for key, value in first.items()
        if _is_scalar(value) or (isinstance(value, list) and all(_is_scalar(v) for v in value))
    ]


def _csv_cell(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, list):
        value = "; ".join("" if v is None else str(v) for v in value)
    elif isinstance(value, bool):
        value = "true" if value else "false"
    return '"' + str(value).replace('"', '""') + '"'


def to_csv(records: List[Record]) -> str:
    if not records:
        return ""
    headers = _csv_columns(records[0])
    lines = [",".join(headers)]
    for record in records:
        lines.append(",".join(_csv_cell(record.get(header)) for header in headers))
    return "\n".join(lines)


def _joined(value: Any) -> str:
    return ", ".join(str(v) for v in value) if isinstance(value, list) else ""


def to_txt(records: List[Record]) -> str:
    blocks = []
    for record in records:
        lines = [
            f"标题: {record.get('title') or '未命名'}",
            f"分类: {record.get('category') or '未分类'}",
            f"描述: {record.get('description') or '无描述'}",
            f"标签: {_joined(record.get('tags'))}",
            f"创建时间: {record.get('createdAt') or '未知'}",
            f"更新时间: {record.get('updatedAt') or '未知'}",
            "---",
        ]
        blocks.append("\n".join(lines))
    return "\n\n".join(blocks)


def export_resources(records: List[Record], fmt: str) -> Tuple[str, str, str]:
    """Render ``records`` in ``fmt``.

    Returns
    -------
    Tuple[str, str, str]
        The file body, its content type and its file extension.

    Raises
    ------
    ResourceValidationError
        For formats other than json, csv and txt.
    """
    fmt = (fmt or "").lower()
    if fmt == "json":
        body = json.dumps(records, ensure_ascii=False, indent=2)
    elif fmt == "csv":
        body = to_csv(records)
    elif fmt == "txt":
        body = to_txt(records)
    else:
        raise ResourceValidationError("unsupported export format, expected one of: json, csv, txt")
    return body, CONTENT_TYPES[fmt], fmt


def export_filename(filename: str, extension: str, now: Optional[datetime] = None) -> str:
    """``<filename>_<timestamp>.<ext>`` with ``:`` and ``.`` in the timestamp replaced by ``-``."""
    now = now or datetime.now(timezone.utc)
    stamp = now.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")
    stamp = stamp.replace(":", "-").replace(".", "-")
    return f"{filename}_{stamp}.{extension}"
