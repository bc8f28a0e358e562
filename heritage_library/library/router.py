"""
Route definitions for the resource library API.

Endpoints under /api/resources:
- GET    /load-all                       : paginated, sorted, searchable listing
- GET    /search-all                     : every resource, for client-side search
- GET    /stats                          : aggregate statistics
- POST   /export                         : download resources as json/csv/txt
- POST   /batch                          : delete/move/update/tag/export many resources
- GET    /{category}                     : resources of one category
- GET    /{category}/{id}                : one resource
- POST   /{category}                     : create a resource
- PUT    /{category}/{id}                : partial update
- DELETE /{category}/{id}                : delete a resource and its files
- POST   /{category}/{id}/media          : attach a media file (one video max)
- DELETE /{category}/{id}/media/{index}  : detach a media file
"""

from __future__ import annotations

import logging
import secrets
import time
from typing import Any, Dict, Optional
from urllib.parse import quote

from fastapi import APIRouter, Body, Depends, HTTPException, Query, Request, Response

from .batch import apply_batch
from .errors import (
    LibraryError,
    MediaConflictError,
    PersistenceError,
    ResourceNotFoundError,
    ResourceValidationError,
)
from .export import collect_for_export, export_filename, export_resources
from .media import BlobStore, attach_media, remove_media, validate_media
from .query import ListOptions, SortField, SortOrder, list_all, search_all
from .schemas import BatchRequest, ExportRequest, MediaRef, PaginatedResources, ResourceCreate
from .stats import compute_statistics
from .store import CategoryStore, utc_now_iso

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/resources", tags=["resources"])


def get_store(request: Request) -> CategoryStore:
    return request.app.state.store


def get_blob_store(request: Request) -> BlobStore:
    return request.app.state.blob_store


def _persist(store: CategoryStore) -> None:
    try:
        store.persist()
    except PersistenceError as exc:
        raise HTTPException(status_code=500, detail=f"Failed to save resources: {exc}")


def _new_resource_id() -> str:
    return f"{int(time.time() * 1000):x}{secrets.token_hex(4)}"


@router.get("/load-all", response_model=PaginatedResources)
def load_all(
    request: Request,
    page: int = Query(default=1, ge=1, description="Current page (1-indexed)"),
    limit: Optional[int] = Query(default=None, ge=1, description="Items per page"),
    sort_by: SortField = Query(default="updatedAt", alias="sortBy"),
    sort_order: SortOrder = Query(default="desc", alias="sortOrder"),
    category: Optional[str] = Query(default=None, description="Exact category filter"),
    search: Optional[str] = Query(default=None, description="Case-insensitive text search"),
    store: CategoryStore = Depends(get_store),
) -> PaginatedResources:
    options = ListOptions(
        page=page,
        limit=limit or request.app.state.settings.page_size,
        sort_by=sort_by,
        sort_order=sort_order,
        category=(category or "").strip() or None,
        search=search,
    )
    return list_all(store, options)


@router.get("/search-all")
def load_everything(store: CategoryStore = Depends(get_store)):
    resources, total = search_all(store)
    return {"success": True, "resources": resources, "totalCount": total}


@router.get("/stats")
def statistics(store: CategoryStore = Depends(get_store)):
    return {"success": True, "statistics": compute_statistics(store.snapshot())}


@router.post("/export")
def export(req: ExportRequest, store: CategoryStore = Depends(get_store)) -> Response:
    """Return the referenced resources as a downloadable file.

    References that do not resolve are skipped; the request fails with
    400 only when none of them resolves or the format is unsupported.
    """
    records, failed = collect_for_export(store, req.resources)
    if not records:
        raise HTTPException(status_code=400, detail="No exportable resources found")
    try:
        body, content_type, extension = export_resources(records, req.format)
    except ResourceValidationError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    if failed:
        logger.info("Export skipped %d missing resources", len(failed))

    filename = export_filename(req.filename, extension)
    return Response(
        content=body,
        media_type=content_type,
        headers={"Content-Disposition": f"attachment; filename*=UTF-8''{quote(filename)}"},
    )


@router.post("/batch")
def batch(
    req: BatchRequest,
    store: CategoryStore = Depends(get_store),
    blob_store: BlobStore = Depends(get_blob_store),
):
    try:
        results = apply_batch(store, req.action, req.resources, req.options, blob_store)
    except PersistenceError as exc:
        raise HTTPException(status_code=500, detail=f"Batch operation failed: {exc}")
    return {
        "success": True,
        "action": req.action,
        "results": results.model_dump(),
        "summary": {
            "total": results.total,
            "success": len(results.success),
            "failed": len(results.failed),
        },
    }


@router.get("/{category}")
def list_category(category: str, store: CategoryStore = Depends(get_store)):
    resources = store.category_records(category)
    return {"success": True, "category": category, "resources": resources, "count": len(resources)}


@router.get("/{category}/{resource_id}")
def get_resource(category: str, resource_id: str, store: CategoryStore = Depends(get_store)):
    try:
        resource = store.get(category, resource_id)
    except ResourceNotFoundError:
        raise HTTPException(status_code=404, detail="Resource not found")
    return {"success": True, "resource": resource}


@router.post("/{category}")
def create_resource(category: str, req: ResourceCreate, store: CategoryStore = Depends(get_store)):
    now = utc_now_iso()
    record = req.to_record()
    record.update(
        id=req.id or _new_resource_id(),
        category=category,
        createdAt=now,
        updatedAt=now,
    )
    with store.lock:
        try:
            resource = store.add(category, record)
        except ResourceValidationError as exc:
            raise HTTPException(status_code=400, detail=str(exc))
        _persist(store)
    logger.info("Created resource %s/%s", category, resource["id"])
    return {"success": True, "resource": resource}


@router.put("/{category}/{resource_id}")
def update_resource(
    category: str,
    resource_id: str,
    updates: Dict[str, Any] = Body(...),
    store: CategoryStore = Depends(get_store),
):
    if "media" in updates:
        try:
            validate_media(updates["media"])
        except LibraryError as exc:
            raise HTTPException(status_code=400, detail=str(exc))
    with store.lock:
        try:
            resource = store.update(category, resource_id, updates)
        except ResourceNotFoundError:
            raise HTTPException(status_code=404, detail="Resource not found")
        _persist(store)
    return {"success": True, "resource": resource}


@router.delete("/{category}/{resource_id}")
def delete_resource(
    category: str,
    resource_id: str,
    store: CategoryStore = Depends(get_store),
    blob_store: BlobStore = Depends(get_blob_store),
):
    with store.lock:
        record = store.find(category, resource_id)
        if record is None:
            raise HTTPException(status_code=404, detail="Resource not found")
        blob_store.delete_resource_files(record)
        store.delete(category, resource_id)
        _persist(store)
    return {"success": True}


@router.post("/{category}/{resource_id}/media")
def add_media(
    category: str,
    resource_id: str,
    media: MediaRef,
    store: CategoryStore = Depends(get_store),
):
    with store.lock:
        try:
            resource = attach_media(store, category, resource_id, media)
        except ResourceNotFoundError:
            raise HTTPException(status_code=404, detail="Resource not found")
        except MediaConflictError as exc:
            raise HTTPException(status_code=400, detail=str(exc))
        _persist(store)
    return {"success": True, "mediaFile": media.model_dump(), "resource": resource}


@router.delete("/{category}/{resource_id}/media/{index}")
def delete_media(
    category: str,
    resource_id: str,
    index: int,
    store: CategoryStore = Depends(get_store),
    blob_store: BlobStore = Depends(get_blob_store),
):
    with store.lock:
        try:
            remaining = remove_media(store, category, resource_id, index, blob_store)
        except ResourceNotFoundError as exc:
            raise HTTPException(status_code=404, detail=str(exc))
        _persist(store)
    return {"success": True, "remainingMedia": remaining}
