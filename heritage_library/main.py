# heritage_library/main.py
from typing import Optional

from fastapi import FastAPI, HTTPException

from . import __version__
from .config import CATEGORIES, Settings, load_settings
from .library import library_router
from .library.matching import build_reply, extract_keywords, find_matches
from .library.media import BlobStore
from .library.store import CategoryStore, utc_now_iso
from .logging_setup import setup_logging
from .models import ChatReply, ChatRequest


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """Build the API around a freshly loaded resource library.

    Run with ``uvicorn heritage_library.main:create_app --factory``.
    """
    if settings is None:
        settings = load_settings()
        setup_logging(settings.log_level)

    app = FastAPI(
        title="Heritage Resource Library",
        description=(
            "Catalogue of traditional-culture resources: categorized records "
            "with attached media, batch operations, exports and keyword search."
        ),
        version=__version__,
    )

    store = CategoryStore(settings.knowledge_dir)
    store.load()
    app.state.settings = settings
    app.state.store = store
    app.state.blob_store = BlobStore(settings.resources_dir, settings.base_url)

    app.include_router(library_router)

    @app.get("/api/status")
    def status():
        return {
            "success": True,
            "message": "resource server is running",
            "timestamp": utc_now_iso(),
            "version": __version__,
        }

    @app.get("/api/categories")
    def categories():
        return {"success": True, "categories": CATEGORIES, "count": len(CATEGORIES)}

    @app.post("/api/chat", response_model=ChatReply)
    def chat(req: ChatRequest):
        if not req.message.strip():
            raise HTTPException(status_code=400, detail="Empty message.")

        keywords = extract_keywords(req.message)
        matches = find_matches(store.snapshot(), keywords)
        reply = build_reply(req.message, matches)
        return ChatReply(
            response=reply["response"],
            media=reply["media"],
            resources=reply["resources"],
            keywords=keywords,
            timestamp=utc_now_iso(),
        )

    return app
