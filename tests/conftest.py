"""Pytest fixtures shared by the resource library tests."""

import json
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from heritage_library.config import Settings
from heritage_library.library.media import BlobStore
from heritage_library.library.store import CategoryStore
from heritage_library.main import create_app


def make_resource(id, title, **fields):
    """Build a resource record the way it is stored in ``data.json``."""
    record = {
        "id": id,
        "title": title,
        "description": fields.pop("description", ""),
        "tags": fields.pop("tags", []),
        "keywords": fields.pop("keywords", []),
        "media": fields.pop("media", []),
        "createdAt": fields.pop("createdAt", "2024-01-01T00:00:00.000Z"),
        "updatedAt": fields.pop("updatedAt", "2024-01-01T00:00:00.000Z"),
    }
    record.update(fields)
    return record


def write_category(knowledge_dir: Path, category: str, document) -> Path:
    """Write ``document`` as the data.json of ``category``."""
    directory = knowledge_dir / category
    directory.mkdir(parents=True, exist_ok=True)
    data_file = directory / "data.json"
    if isinstance(document, str):
        data_file.write_text(document, encoding="utf-8")
    else:
        data_file.write_text(json.dumps(document, ensure_ascii=False), encoding="utf-8")
    return data_file


def read_category(knowledge_dir: Path, category: str):
    return json.loads((knowledge_dir / category / "data.json").read_text(encoding="utf-8"))


@pytest.fixture
def resources_dir(tmp_path):
    path = tmp_path / "resources"
    path.mkdir()
    return path


@pytest.fixture
def knowledge_dir(resources_dir):
    path = resources_dir / "knowledge"
    path.mkdir()
    return path


@pytest.fixture
def store(knowledge_dir):
    """An empty, loaded store backed by a temporary knowledge directory."""
    s = CategoryStore(knowledge_dir)
    s.load()
    return s


@pytest.fixture
def blob_store(resources_dir):
    return BlobStore(resources_dir, "http://localhost:3001")


@pytest.fixture
def seeded_store(knowledge_dir):
    """A store with two categories loaded from disk."""
    write_category(
        knowledge_dir,
        "traditionalFoods",
        {
            "dumplings": make_resource(
                "dumplings", "饺子", tags=["节日"], keywords=["饺子", "面食"],
                updatedAt="2024-03-01T00:00:00.000Z",
            ),
            "duck": make_resource(
                "duck", "北京烤鸭", keywords=["烤鸭"], description="京菜代表",
                updatedAt="2024-02-01T00:00:00.000Z",
            ),
        },
    )
    write_category(
        knowledge_dir,
        "traditionalCrafts",
        {
            "paper": make_resource(
                "paper", "剪纸", tags=["民间艺术"], keywords=["剪纸"],
                updatedAt="2024-01-15T00:00:00.000Z",
            ),
        },
    )
    s = CategoryStore(knowledge_dir)
    s.load()
    return s


@pytest.fixture
def settings(resources_dir, knowledge_dir):
    return Settings(
        resources_dir=resources_dir,
        knowledge_dir=knowledge_dir,
        base_url="http://localhost:3001",
        log_level="INFO",
        page_size=12,
    )


@pytest.fixture
def client(settings):
    app = create_app(settings)
    with TestClient(app) as c:
        yield c
