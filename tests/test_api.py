from types import SimpleNamespace

import pytest
from fastapi.testclient import TestClient

from api.dependencies import get_services
from api.main import app
from content_search.exception import NotFoundError, ValidationError
from content_search.src.search.schemas import SearchResult


def make_item(**overrides):
    fields = dict(
        id="item-1",
        name="invoice.pdf",
        path="invoice.pdf",
        mime_type="application/pdf",
        size=10,
        category="Document",
        description="",
        tags=["finance"],
        summary="An invoice.",
        is_processed=True,
        processing_status="processed",
        processed_at=None,
        embedding=[0.1, 0.2],
        text_extraction_error=None,
        embedding_error=None,
        image_description=None,
        audio_transcript=None,
        video_description=None,
        created_at=None,
    )
    fields.update(overrides)
    return SimpleNamespace(**fields)


class FakeSearchEngine:
    def __init__(self):
        self.calls = []

    async def search(self, user_id, query, options=None):
        self.calls.append(("smart", user_id, query, options))
        if not query.strip():
            raise ValidationError("Search query is required")
        return [SearchResult(make_item(), 0.876, "text")]

    async def search_by_content(self, user_id, query, limit=20):
        return [SearchResult(make_item(), 0.8, "content")]

    async def search_by_name(self, user_id, query, limit=20):
        return []

    async def search_by_tags(self, user_id, tag, limit=20):
        folder = SimpleNamespace(id="folder-1", name="Finance", path="/", description="", tags=["finance"], created_at=None)
        return [SearchResult(folder, 0.95, "tags", type="folder")]


class FakeOrchestrator:
    async def process_entity(self, item_id):
        if item_id == "missing":
            raise NotFoundError(f"Content item not found: {item_id}")
        return make_item(id=item_id)

    async def reprocess_entity(self, item_id):
        return make_item(id=item_id, summary="Fresh.")


class FakeScheduler:
    def __init__(self):
        self.scheduled = []

    def schedule(self, item_id):
        self.scheduled.append(item_id)

    def schedule_batch(self, item_ids, batch_size=None, delay=None):
        self.scheduled.append((tuple(item_ids), batch_size, delay))


class FakeEmbedder:
    async def check_connection(self):
        return {"connected": True, "provider": "huggingface", "model": "m", "dimensions": 384, "error": None}


@pytest.fixture
def services():
    return SimpleNamespace(
        search_engine=FakeSearchEngine(),
        orchestrator=FakeOrchestrator(),
        scheduler=FakeScheduler(),
        embedder=FakeEmbedder(),
    )


@pytest.fixture
def client(services, monkeypatch):
    async def skip_init_db():
        return None

    monkeypatch.setattr("api.main.init_db", skip_init_db)
    app.dependency_overrides[get_services] = lambda: services
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


def test_health(client):
    resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.json()["status"] == "ok"


def test_smart_search(client, services):
    resp = client.post(
        "/search/smart",
        json={"user_id": "u1", "query": "invoice", "category": "Document", "date_range": "custom", "start_date": "2024-01-01"},
    )

    assert resp.status_code == 200
    body = resp.json()
    assert body["total"] == 1
    result = body["results"][0]
    assert result["relevance_score"] == 0.88
    assert result["search_type"] == "text"
    assert result["type"] == "file"
    assert "embedding" not in result

    _, user_id, query, options = services.search_engine.calls[0]
    assert (user_id, query) == ("u1", "invoice")
    assert options.category == "Document"
    assert options.date_range.preset == "custom"


def test_blank_query_is_bad_request(client):
    resp = client.post("/search/smart", json={"user_id": "u1", "query": "  "})
    assert resp.status_code == 400


def test_content_and_filename_search(client):
    assert client.post("/search/content", json={"user_id": "u1", "query": "x"}).json()["total"] == 1
    assert client.post("/search/filename", json={"user_id": "u1", "query": "x"}).json()["total"] == 0


def test_tag_search_returns_folders(client):
    body = client.post("/search/tags", json={"user_id": "u1", "tag": "finance"}).json()
    assert body["results"][0]["type"] == "folder"
    assert body["results"][0]["relevance_score"] == 0.95


def test_process_item(client):
    resp = client.post("/search/process/item-9")
    assert resp.status_code == 200
    assert resp.json()["item"]["id"] == "item-9"


def test_process_missing_item_is_not_found(client):
    assert client.post("/search/process/missing").status_code == 404


def test_process_in_background(client, services):
    resp = client.post("/search/process/item-9", params={"background": "true"})
    assert resp.json() == {"item_id": "item-9", "scheduled": True}
    assert services.scheduler.scheduled == ["item-9"]


def test_reprocess_item(client):
    resp = client.post("/search/reprocess/item-3")
    assert resp.json()["item"]["summary"] == "Fresh."


def test_process_batch(client, services):
    resp = client.post("/search/process-batch", json={"ids": ["a", "b"], "batch_size": 1})
    assert resp.json() == {"scheduled": 2}
    assert services.scheduler.scheduled == [(("a", "b"), 1, None)]


def test_provider_status(client):
    body = client.get("/search/provider-status").json()
    assert body["connected"] is True
    assert body["dimensions"] == 384
