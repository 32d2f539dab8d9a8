import pytest

from recipe_scraper.app.api.routes import ingest
from recipe_scraper.app.services.url_parsing.models import (
    HeuristicExtraction,
    ParseResult,
    Strategy,
)
from recipe_scraper.app.services.url_parsing.normalizers import normalize_from_heuristics


def _success_result():
    recipe = normalize_from_heuristics(
        HeuristicExtraction(
            title="Parsed Recipe",
            ingredients=["1 cup flour", "2 eggs"],
            steps=["Mix well"],
        ),
        "https://example.com/recipe",
    )
    return ParseResult(success=True, recipe=recipe, parser_strategy=Strategy.HEURISTICS)


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_ingest_success(monkeypatch, client):
    seen = {}

    async def fake_parse(url, llm_service=None, use_llm=True):
        seen["url"] = url
        seen["use_llm"] = use_llm
        return _success_result()

    monkeypatch.setattr(ingest, "parse_recipe_from_url", fake_parse)

    response = client.post("/recipes/ingest", json={"url": "https://example.com/recipe", "use_llm": False})
    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["parser_strategy"] == "heuristics"
    assert body["llm_enriched"] is False
    assert body["recipe"]["title"] == "Parsed Recipe"
    assert body["recipe"]["yield"] == {"servings": None, "original": None}
    assert body["recipe"]["llmNotes"] == {"extracted": "heuristics"}
    assert "fetchedAt" in body["recipe"]["source"]
    assert seen == {"url": "https://example.com/recipe", "use_llm": False}


@pytest.mark.parametrize(
    "error_code, expected_status",
    [
        ("invalid_url", 400),
        ("fetch_failed", 502),
        ("fetch_timeout", 504),
        ("parse_failed", 422),
    ],
)
def test_ingest_failure_status_codes(monkeypatch, client, error_code, expected_status):
    async def fake_parse(url, llm_service=None, use_llm=True):
        return ParseResult(success=False, error_code=error_code, error_message="nope")

    monkeypatch.setattr(ingest, "parse_recipe_from_url", fake_parse)

    response = client.post("/recipes/ingest", json={"url": "https://example.com/recipe"})
    assert response.status_code == expected_status
    body = response.json()
    assert body["success"] is False
    assert body["error_code"] == error_code
    assert body["recipe"] is None


def test_ingest_rejects_malformed_url(client):
    response = client.post("/recipes/ingest", json={"url": "not a url"})
    assert response.status_code == 422
    body = response.json()
    assert body["error_code"] == "validation_error"
    assert any(detail["field"] == "body.url" for detail in body["details"])
