"""
Batch operations over many (category, id) references.

Each reference is processed independently: a missing resource, a
missing option or an unexpected exception fails that one item and the
batch carries on. The store is flushed once at the end when at least
one item succeeded.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, Iterable, Optional, Union

from .errors import LibraryError, ResourceValidationError
from .media import BlobStore, validate_media
from .schemas import BatchOptions, BatchRef, BatchResult
from .store import CategoryStore, Record, utc_now_iso

logger = logging.getLogger(__name__)


def _delete(store: CategoryStore, ref: BatchRef, record: Record, options: BatchOptions,
            blob_store: Optional[BlobStore]) -> Dict[str, Any]:
    if blob_store is not None:
        blob_store.delete_resource_files(record)
    store.delete(ref.category, ref.id)
    return {"action": "deleted"}


def _move(store: CategoryStore, ref: BatchRef, record: Record, options: BatchOptions,
          blob_store: Optional[BlobStore]) -> Dict[str, Any]:
    target = options.target_category
    if not target:
        raise ResourceValidationError("missing target category")
    if target == ref.category:
        store.update(ref.category, ref.id, {})
        return {"action": "moved", "targetCategory": target}
    if store.exists(target, ref.id):
        logger.warning("Moving %s/%s overwrites an existing resource in %s", ref.category, ref.id, target)
    store.add(target, {**record, "category": target, "updatedAt": utc_now_iso()})
    store.delete(ref.category, ref.id)
    return {"action": "moved", "targetCategory": target}


def _update(store: CategoryStore, ref: BatchRef, record: Record, options: BatchOptions,
            blob_store: Optional[BlobStore]) -> Dict[str, Any]:
    if not options.updates:
        raise ResourceValidationError("missing update data")
    if "media" in options.updates:
        validate_media(options.updates["media"])
    store.update(ref.category, ref.id, options.updates)
    return {"action": "updated"}


def _tag(store: CategoryStore, ref: BatchRef, record: Record, options: BatchOptions,
         blob_store: Optional[BlobStore]) -> Dict[str, Any]:
    if not options.tags:
        raise ResourceValidationError("missing tags")
    existing = record.get("tags") if isinstance(record.get("tags"), list) else []
    merged = list(dict.fromkeys([*existing, *options.tags]))
    store.update(ref.category, ref.id, {"tags": merged})
    return {"action": "tagged", "tags": list(options.tags)}


def _export(store: CategoryStore, ref: BatchRef, record: Record, options: BatchOptions,
            blob_store: Optional[BlobStore]) -> Dict[str, Any]:
    return {"action": "exported", "data": record}


Handler = Callable[[CategoryStore, BatchRef, Record, BatchOptions, Optional[BlobStore]], Dict[str, Any]]

ACTIONS: Dict[str, Handler] = {
    "delete": _delete,
    "move": _move,
    "update": _update,
    "tag": _tag,
    "export": _export,
}


def apply_batch(
    store: CategoryStore,
    action: str,
    refs: Iterable[Union[BatchRef, Dict[str, Any]]],
    options: Union[BatchOptions, Dict[str, Any], None] = None,
    blob_store: Optional[BlobStore] = None,
) -> BatchResult:
    """Apply ``action`` to every reference in ``refs``.

    Parameters
    ----------
    store : CategoryStore
        The library to operate on. Its lock is held for the whole batch.
    action : str
        One of ``delete``, ``move``, ``update``, ``tag`` or ``export``.
        Any other value fails every item without touching the store.
    refs : Iterable[BatchRef | dict]
        The ``{category, id}`` references, processed in order.
    options : BatchOptions | dict, optional
        ``targetCategory`` for move, ``updates`` for update, ``tags``
        for tag.
    blob_store : BlobStore, optional
        Used by ``delete`` to remove attached files. Without one, files
        are left on disk.

    Returns
    -------
    BatchResult
        Successful and failed items, and the number of references.

    Raises
    ------
    PersistenceError
        If the final flush fails.
    """
    refs = [BatchRef.model_validate(ref) for ref in refs]
    if options is None:
        options = BatchOptions()
    elif not isinstance(options, BatchOptions):
        options = BatchOptions.model_validate(options)

    result = BatchResult(total=len(refs))
    handler = ACTIONS.get(action)
    if handler is None:
        for ref in refs:
            result.failed.append(
                {"category": ref.category, "id": ref.id, "error": f"unsupported action: {action}"}
            )
        return result

    with store.lock:
        for ref in refs:
            if not ref.category or not ref.id:
                result.failed.append(
                    {"category": ref.category, "id": ref.id, "error": "missing category or id"}
                )
                continue
            try:
                record = store.find(ref.category, ref.id)
                if record is None:
                    result.failed.append(
                        {"category": ref.category, "id": ref.id, "error": f"resource {ref.id} not found"}
                    )
                    continue
                outcome = handler(store, ref, record, options, blob_store)
            except LibraryError as exc:
                result.failed.append({"category": ref.category, "id": ref.id, "error": str(exc)})
                continue
            except Exception as exc:
                logger.exception("Batch %s failed for %s/%s", action, ref.category, ref.id)
                result.failed.append({"category": ref.category, "id": ref.id, "error": str(exc)})
                continue
            result.success.append({"category": ref.category, "id": ref.id, **outcome})

        if result.success:
            store.persist()

    logger.info(
        "Batch %s: %d succeeded, %d failed of %d",
        action, len(result.success), len(result.failed), result.total,
    )
    return result
