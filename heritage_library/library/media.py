"""
Media attachments and the local blob store.

Uploaded files live under the resources root, one sub-directory per
media kind, and are referenced from resources by URL
(``<base_url>/resources/videos/<file>``). ``BlobStore`` maps between the
two and performs best-effort deletion: a file that cannot be removed is
logged and skipped, it never fails the owning mutation.
"""

from __future__ import annotations

import logging
from pathlib import Path, PurePosixPath
from typing import Any, Dict, List, Optional, Union
from urllib.parse import unquote, urlparse

from pydantic import ValidationError

from ..config import FILE_TYPE_MAPPING
from .errors import MediaConflictError, ResourceNotFoundError, ResourceValidationError
from .schemas import MediaRef
from .store import CategoryStore

logger = logging.getLogger(__name__)

ONE_VIDEO_MESSAGE = "this resource already has a video; each resource can hold only one video"

SUBDIRS = {
    "image": "images",
    "video": "videos",
    "audio": "audio",
    "document": "documents",
}


class BlobStore:
    """Local-disk storage for media files referenced by URL."""

    def __init__(self, root: Union[str, Path], base_url: str = ""):
        self.root = Path(root)
        self.base_url = base_url.rstrip("/")

    @staticmethod
    def media_type_for(mime_type: Optional[str], filename: Optional[str]) -> str:
        """Classify a file as image/video/audio/document.

        The mime type prefix wins; otherwise the extension is looked up
        in ``FILE_TYPE_MAPPING``. Anything unknown is a document.
        """
        mime = (mime_type or "").lower()
        ext = PurePosixPath(filename or "").suffix.lstrip(".").lower()
        for kind in ("image", "video", "audio"):
            if mime.startswith(f"{kind}/") or ext in FILE_TYPE_MAPPING[kind]:
                return kind
        return "document"

    def url_for(self, filename: str, media_type: str) -> str:
        subdir = SUBDIRS.get(media_type, "documents")
        return f"{self.base_url}/resources/{subdir}/{filename}"

    def path_for_url(self, url: str) -> Optional[Path]:
        """Resolve a media URL to a path under the resources root.

        Returns ``None`` for URLs that do not point below ``/resources/``
        or that would escape the root.
        """
        path = unquote(urlparse(url).path)
        prefix = "/resources/"
        if not path.startswith(prefix):
            return None
        return self._confine(self.root / path[len(prefix):])

    def _confine(self, path: Path) -> Optional[Path]:
        root = self.root.resolve()
        candidate = path.resolve()
        if candidate == root or root not in candidate.parents:
            return None
        return candidate

    def delete_path(self, path: Union[str, Path]) -> bool:
        """Delete one file below the root; anything outside it is ignored."""
        target = self._confine(Path(path))
        if target is None:
            logger.warning("Refusing to delete %s outside %s", path, self.root)
            return False
        try:
            if not target.is_file():
                return False
            target.unlink()
        except OSError as exc:
            logger.warning("Failed to delete file %s: %s", target, exc)
            return False
        logger.info("Deleted file %s", target)
        return True

    def delete_url(self, url: str) -> bool:
        target = self.path_for_url(url) if url else None
        if target is None:
            return False
        return self.delete_path(target)

    def delete_resource_files(self, record: Dict[str, Any]) -> None:
        """Remove every media file and the primary file of ``record``."""
        for media in record.get("media") or []:
            if isinstance(media, dict) and media.get("url"):
                self.delete_url(media["url"])
        file_path = record.get("filePath")
        if file_path:
            self.delete_path(file_path)


def validate_media(media: Any) -> None:
    """Check a complete media list before it replaces a resource's media.

    Raises
    ------
    ResourceValidationError
        When ``media`` is not a list of media references.
    MediaConflictError
        When the list holds more than one video.
    """
    if not isinstance(media, list):
        raise ResourceValidationError("media must be a list")
    try:
        refs = [MediaRef.model_validate(item) for item in media]
    except ValidationError as exc:
        raise ResourceValidationError(f"invalid media entry: {exc.errors()[0]['msg']}") from None
    if sum(1 for ref in refs if ref.type == "video") > 1:
        raise MediaConflictError(ONE_VIDEO_MESSAGE)


def attach_media(store: CategoryStore, category: str, resource_id: str, media: MediaRef) -> Dict[str, Any]:
    """Append ``media`` to a resource and return the updated record.

    Raises ``MediaConflictError`` when a second video is attached; the
    resource is left untouched in that case. The caller persists.
    """
    with store.lock:
        record = store.get(category, resource_id)
        existing: List[Dict[str, Any]] = list(record.get("media") or [])
        if media.type == "video" and any(
            isinstance(m, dict) and m.get("type") == "video" for m in existing
        ):
            raise MediaConflictError(ONE_VIDEO_MESSAGE)
        existing.append(media.model_dump())
        return store.update(category, resource_id, {"media": existing})


def remove_media(
    store: CategoryStore,
    category: str,
    resource_id: str,
    index: int,
    blob_store: Optional[BlobStore] = None,
) -> List[Dict[str, Any]]:
    """Detach the media at ``index`` and return the remaining media list.

    The file is deleted only after the record no longer references it.
    """
    with store.lock:
        record = store.get(category, resource_id)
        media: List[Dict[str, Any]] = list(record.get("media") or [])
        if index < 0 or index >= len(media):
            raise ResourceNotFoundError(
                category, resource_id, detail=f"media index {index} does not exist"
            )
        removed = media.pop(index)
        store.update(category, resource_id, {"media": media})
        if blob_store is not None and isinstance(removed, dict) and removed.get("url"):
            blob_store.delete_url(removed["url"])
        return media
