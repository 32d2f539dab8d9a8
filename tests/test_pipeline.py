import json

import pytest

from recipe_scraper.app.core.config import Settings
from recipe_scraper.app.services.url_parsing import pipeline
from recipe_scraper.app.services.url_parsing.html_fetcher import FetchError, FetchTimeoutError
from recipe_scraper.app.services.url_parsing.models import HeuristicExtraction, Strategy
from recipe_scraper.app.services.url_parsing.normalizers import normalize_from_heuristics

URL = "https://example.com/recipes/pancakes"

HEURISTIC_BODY = """
<h1>DOM Pancakes</h1>
<div class="ingredients"><ul><li>1 cup dom flour</li><li>1 cup dom milk</li></ul></div>
<div class="instructions"><ol><li>Whisk the dom batter.</li></ol></div>
"""

JSON_LD = {
    "@context": "https://schema.org",
    "@type": "Recipe",
    "name": "JSON-LD Pancakes",
    "description": "Fluffy.",
    "recipeYield": "4 servings",
    "prepTime": "PT10M",
    "cookTime": "PT15M",
    "keywords": "breakfast",
    "recipeIngredient": ["200 g flour", "300 ml milk", "1 egg"],
    "recipeInstructions": [{"@type": "HowToStep", "text": "Mix."}, {"@type": "HowToStep", "text": "Fry."}],
}


def _page(body: str, head: str = "") -> str:
    return f"<html><head><title>Pancakes</title>{head}</head><body>{body}</body></html>"


def _json_ld_script(data) -> str:
    return f'<script type="application/ld+json">{json.dumps(data)}</script>'


class FakeLLMService:
    def __init__(self, extract_result=None, enrich_result=None):
        self.extract_result = extract_result
        self.enrich_result = enrich_result
        self.extract_calls = []
        self.enrich_calls = []

    async def extract(self, url, html, heuristics=None, readable_html=None):
        self.extract_calls.append({"url": url, "heuristics": heuristics, "readable_html": readable_html})
        return self.extract_result

    async def enrich(self, base, html, heuristics=None, readable_html=None):
        self.enrich_calls.append({"base": base, "heuristics": heuristics, "readable_html": readable_html})
        return self.enrich_result


@pytest.fixture(autouse=True)
def no_readability(monkeypatch):
    calls = []

    def fake_readable(html, url):
        calls.append(url)
        return None

    monkeypatch.setattr(pipeline, "extract_readable_content", fake_readable)
    return calls


def _llm_recipe(title="LLM Pancakes", steps=("Cook.",)):
    extraction = HeuristicExtraction(title=title, ingredients=["1 cup flour", "1 egg"], steps=list(steps))
    recipe = normalize_from_heuristics(extraction, URL)
    return recipe.model_copy(update={"llm_notes": {"extracted": "llm", "notes": []}})


@pytest.mark.asyncio
async def test_json_ld_short_circuits_heuristics():
    html = _page(HEURISTIC_BODY, head=_json_ld_script(JSON_LD))
    result = await pipeline.ingest_html(html, URL, use_llm=False)
    assert result.success
    assert result.parser_strategy == Strategy.JSON_LD
    assert [i.item for i in result.recipe.ingredients] == ["flour", "milk", "egg"]
    assert [s.text for s in result.recipe.steps] == ["Mix.", "Fry."]
    assert result.recipe.time.total == 25
    assert not result.used_llm


@pytest.mark.asyncio
async def test_microdata_used_when_json_ld_missing():
    body = """
    <div itemscope itemtype="https://schema.org/Recipe">
      <h1 itemprop="name">Microdata Pancakes</h1>
      <span itemprop="recipeIngredient">1 cup flour</span>
      <span itemprop="recipeIngredient">1 egg</span>
      <p itemprop="recipeInstructions">Mix and fry.</p>
    </div>
    """
    result = await pipeline.ingest_html(_page(body), URL, use_llm=False)
    assert result.parser_strategy == Strategy.MICRODATA
    assert result.recipe.title == "Microdata Pancakes"


@pytest.mark.asyncio
async def test_heuristics_when_no_structured_data():
    result = await pipeline.ingest_html(_page(HEURISTIC_BODY), URL, use_llm=False)
    assert result.parser_strategy == Strategy.HEURISTICS
    assert result.recipe.title == "DOM Pancakes"
    assert result.recipe.llm_notes == {"extracted": "heuristics"}


@pytest.mark.asyncio
async def test_invalid_json_ld_falls_through(monkeypatch):
    def broken_normalize(node, url):
        raise ValueError("bad node")

    monkeypatch.setattr(pipeline, "normalize_from_structured", broken_normalize)
    html = _page(HEURISTIC_BODY, head=_json_ld_script(JSON_LD))
    result = await pipeline.ingest_html(html, URL, use_llm=False)
    assert result.parser_strategy == Strategy.HEURISTICS


@pytest.mark.asyncio
async def test_readability_heuristics_and_llm_context(monkeypatch, no_readability):
    readable = "<div><ul class='ingredients'><li>1 cup flour</li><li>1 egg</li></ul><div class='method'><p>Fry it.</p></div></div>"

    def fake_readable(html, url):
        no_readability.append(url)
        return readable

    monkeypatch.setattr(pipeline, "extract_readable_content", fake_readable)
    service = FakeLLMService(enrich_result=None)
    page = _page("<h1>Cluttered</h1><p>Just a story about pancakes.</p>")
    result = await pipeline.ingest_html(page, URL, llm_service=service)

    assert result.parser_strategy == Strategy.READABILITY_HEURISTICS
    assert [s.text for s in result.recipe.steps] == ["Fry it."]
    assert len(no_readability) == 1
    enrich_call = service.enrich_calls[0]
    assert enrich_call["heuristics"].ingredients == ["1 cup flour", "1 egg"]
    assert enrich_call["readable_html"] == readable
    assert not result.llm_enriched


@pytest.mark.asyncio
async def test_llm_fallback_used_when_nothing_else_works():
    service = FakeLLMService(extract_result=_llm_recipe())
    result = await pipeline.ingest_html(_page("<p>Nothing structured.</p>"), URL, llm_service=service)
    assert result.success
    assert result.parser_strategy == Strategy.LLM_FALLBACK
    assert result.used_llm
    assert not result.llm_enriched
    assert service.enrich_calls == []
    assert "LLM fallback used; please verify ingredients." in result.warnings


@pytest.mark.asyncio
async def test_incomplete_llm_result_is_rejected():
    service = FakeLLMService(extract_result=_llm_recipe(steps=()))
    result = await pipeline.ingest_html(_page("<p>Nothing structured.</p>"), URL, llm_service=service)
    assert not result.success
    assert result.error_code == "parse_failed"


@pytest.mark.asyncio
async def test_partial_structured_recipe_returned_when_nothing_complete():
    partial = dict(JSON_LD, recipeInstructions=[])
    service = FakeLLMService(extract_result=None)
    html = _page("<p>Story.</p>", head=_json_ld_script(partial))
    result = await pipeline.ingest_html(html, URL, llm_service=service)
    assert result.success
    assert result.parser_strategy == Strategy.JSON_LD
    assert result.recipe.steps == []
    assert len(service.extract_calls) == 1
    assert "Recipe is incomplete (missing ingredients or steps)." in result.warnings


@pytest.mark.asyncio
async def test_enrichment_runs_when_fields_missing():
    base_html = _page(HEURISTIC_BODY)
    enriched = _llm_recipe(title="DOM Pancakes")
    service = FakeLLMService(enrich_result=enriched)
    result = await pipeline.ingest_html(base_html, URL, llm_service=service)
    assert result.parser_strategy == Strategy.HEURISTICS
    assert result.llm_enriched
    assert result.used_llm
    assert result.recipe == enriched
    assert service.enrich_calls[0]["base"].title == "DOM Pancakes"


@pytest.mark.asyncio
async def test_enrichment_skipped_for_complete_metadata():
    html = _page("", head=_json_ld_script(JSON_LD))
    service = FakeLLMService(enrich_result=_llm_recipe())
    result = await pipeline.ingest_html(html, URL, llm_service=service)
    assert service.enrich_calls == []
    assert not result.llm_enriched


@pytest.mark.asyncio
async def test_use_llm_false_never_calls_service():
    service = FakeLLMService(extract_result=_llm_recipe())
    result = await pipeline.ingest_html(_page("<p>Nothing.</p>"), URL, llm_service=service, use_llm=False)
    assert not result.success
    assert service.extract_calls == []


def test_should_enrich():
    recipe = normalize_from_heuristics(
        HeuristicExtraction(title="T", ingredients=["1 g a", "1 g b"], steps=["Go."]), URL
    )
    assert pipeline.should_enrich(recipe)
    full = recipe.model_copy(
        update={
            "description": "d",
            "tags": ["x"],
            "time": recipe.time.model_copy(update={"total": 5}),
            "yield_": recipe.yield_.model_copy(update={"original": "2 servings"}),
        }
    )
    assert not pipeline.should_enrich(full)


@pytest.mark.asyncio
async def test_parse_recipe_from_url_maps_fetch_errors(monkeypatch):
    settings = Settings(_env_file=None)

    async def fail_with(exc):
        async def fake_fetch(url, timeout=12.0, user_agent=None):
            raise exc

        monkeypatch.setattr(pipeline, "fetch_html", fake_fetch)
        return await pipeline.parse_recipe_from_url(URL, use_llm=False, settings=settings)

    result = await fail_with(ValueError("URL must start with http or https."))
    assert result.error_code == "invalid_url"
    result = await fail_with(FetchTimeoutError("slow"))
    assert result.error_code == "fetch_timeout"
    result = await fail_with(FetchError("Site returned status 403.", status_code=403))
    assert result.error_code == "fetch_failed"
    assert result.warnings == ["blocked_by_site"]
    result = await fail_with(FetchError("Site returned status 500.", status_code=500))
    assert result.warnings == ["fetch_http_error"]


@pytest.mark.asyncio
async def test_parse_recipe_from_url_success(monkeypatch):
    async def fake_fetch(url, timeout=12.0, user_agent=None):
        return _page(HEURISTIC_BODY, head=_json_ld_script(JSON_LD))

    monkeypatch.setattr(pipeline, "fetch_html", fake_fetch)
    result = await pipeline.parse_recipe_from_url(URL, use_llm=False, settings=Settings(_env_file=None))
    assert result.success
    assert result.recipe.source.url == URL
