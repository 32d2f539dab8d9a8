import pytest

from recipe_scraper.app.services.llm_client import (
    LLMError,
    LLMNoOutputError,
    LLMResult,
    LLMTimeoutError,
    LLMUnavailableError,
    LLMValidationError,
)
from recipe_scraper.app.services.url_parsing.extractors.llm import (
    TRUNCATED_OUTPUT_HINT,
    build_llm_context,
    llm_result_to_recipe,
    merge_enrichment,
    reduce_html_to_text,
)
from recipe_scraper.app.services.url_parsing.models import (
    HeuristicExtraction,
    LLMEnrichment,
    LLMExtraction,
    TokenUsage,
)
from recipe_scraper.app.services.url_parsing.normalizers import normalize_from_heuristics

URL = "https://example.com/chili"
HTML = "<html><body><h1>Chili</h1><script>var x = 1;</script><p>Cook the beans.</p></body></html>"


def _extraction(**overrides):
    data = {
        "title": "Chili",
        "servings": 4,
        "prep_minutes": 10,
        "cook_minutes": 35,
        "ingredients": ["500 g beef", "1 can beans"],
        "steps": ["Brown the beef.", "Add beans and simmer."],
        "notes": ["Freezes well."],
        "tags": ["Dinner"],
        "cuisines": ["Mexican"],
        "methods": ["simmer", "dinner"],
    }
    data.update(overrides)
    return LLMExtraction(**data)


def _base_recipe():
    extraction = HeuristicExtraction(
        title="Original Title",
        ingredients=["1 cup rice", "2 cups water"],
        steps=["Boil water.", "Add rice."],
    )
    return normalize_from_heuristics(extraction, URL)


def test_reduce_html_to_text_drops_scripts():
    text = reduce_html_to_text(HTML, limit=5000)
    assert "var x" not in text
    assert text.splitlines() == ["Chili", "Cook the beans."]
    assert reduce_html_to_text(HTML, limit=5) == "Chili"


def test_build_llm_context_caps_heuristic_lines():
    heuristics = HeuristicExtraction(
        title="Chili",
        ingredients=[f"{i} g thing" for i in range(1, 60)],
        steps=["Stir."] * 50,
    )
    context = build_llm_context(URL, HTML, heuristics=heuristics)
    assert context.startswith(f"URL: {URL}")
    assert "Heuristic title: Chili" in context
    assert "- 40 g thing" in context
    assert "- 41 g thing" not in context
    assert "40. Stir." in context
    assert "41. Stir." not in context
    assert context.endswith("Context excerpt:\nChili\nCook the beans.")


def test_build_llm_context_prefers_readable_html():
    context = build_llm_context(URL, HTML, readable_html="<div><p>Readable only</p></div>")
    assert "Readable only" in context
    assert "Cook the beans." not in context


def test_llm_result_to_recipe():
    heuristics = HeuristicExtraction(
        title="Heuristic Chili",
        image="https://example.com/chili.jpg",
        ingredients=["Serves 4 hungry people", "1 onion"],
    )
    recipe = llm_result_to_recipe(_extraction(title=None), URL, heuristics)
    assert recipe.title == "Heuristic Chili"
    assert recipe.image == "https://example.com/chili.jpg"
    assert recipe.yield_.servings == 4
    assert recipe.yield_.original == "Serves 4 hungry people"
    assert recipe.time.total == 45
    assert recipe.tags == ["dinner", "mexican", "simmer"]
    assert recipe.llm_notes == {"extracted": "llm", "notes": ["Freezes well."]}
    assert recipe.units.value == "metric"


def test_merge_enrichment_never_overwrites_present_fields():
    base = _base_recipe()
    enrichment = LLMEnrichment(
        title="A Different Title",
        description="Fluffy rice.",
        servings=2,
        prep_minutes=5,
        cook_minutes=15,
        tags=["Side", "rice"],
        methods=["Boil"],
    )
    merged = merge_enrichment(base, enrichment)
    assert merged.title == "Original Title"
    assert merged.description == "Fluffy rice."
    assert merged.yield_.servings == 2
    assert (merged.time.prep, merged.time.cook, merged.time.total) == (5, 15, 20)
    assert merged.tags == ["side", "rice", "boil"]
    assert merged.ingredients == base.ingredients
    assert merged.steps == base.steps
    assert merged.llm_notes["extracted"] == "heuristics"
    assert "description" in merged.llm_notes["enriched"]
    assert "title" not in merged.llm_notes["enriched"]
    assert base.description is None


def test_merge_enrichment_unions_existing_tags():
    base = _base_recipe().model_copy(update={"tags": ["dinner"]})
    merged = merge_enrichment(base, LLMEnrichment(tags=["Dinner", "Easy"], cuisines=["Thai"]))
    assert merged.tags == ["dinner", "easy", "thai"]


@pytest.mark.asyncio
async def test_extract_success_is_cached(make_llm_service):
    service, provider = make_llm_service(
        [LLMResult(object=_extraction(), usage=TokenUsage(prompt_tokens=10, completion_tokens=5, total_tokens=15))]
    )
    first = await service.extract(URL, HTML)
    second = await service.extract(URL, HTML)
    assert first is not None
    assert second is first
    assert len(provider.calls) == 1
    call = provider.calls[0]
    assert call["schema"] is LLMExtraction
    assert call["temperature"] == 0.15
    assert call["max_output_tokens"] == 1024
    assert call["timeout"] == 8.0


@pytest.mark.asyncio
async def test_validation_failure_retries_with_hint(make_llm_service):
    service, provider = make_llm_service(
        [LLMValidationError("servings must be positive"), LLMResult(object=_extraction())]
    )
    recipe = await service.extract(URL, HTML)
    assert recipe is not None
    assert len(provider.calls) == 2
    retry_prompt = provider.calls[1]["user_prompt"]
    assert "Previous output failed validation: servings must be positive" in retry_prompt
    assert "Return corrected JSON only." in retry_prompt
    assert provider.calls[1]["timeout"] == 12.0


@pytest.mark.asyncio
async def test_no_output_shrinks_context(make_llm_service):
    long_html = "<html><body>" + "<p>" + ("word " * 2000) + "</p></body></html>"
    service, provider = make_llm_service([LLMNoOutputError("truncated"), LLMResult(object=_extraction())])
    await service.extract(URL, long_html)
    first_prompt = provider.calls[0]["user_prompt"]
    retry_prompt = provider.calls[1]["user_prompt"]
    assert len(first_prompt) > 3500
    context, _, hint = retry_prompt.partition("\n\nPrevious output failed validation: ")
    assert len(context) == 3500
    assert hint.startswith(TRUNCATED_OUTPUT_HINT)


@pytest.mark.asyncio
async def test_timeouts_exhaust_attempt_budget(make_llm_service):
    service, provider = make_llm_service(
        [LLMTimeoutError("t1"), LLMTimeoutError("t2"), LLMTimeoutError("t3"), LLMResult(object=_extraction())]
    )
    assert await service.extract(URL, HTML) is None
    assert [c["timeout"] for c in provider.calls] == [8.0, 12.0, 12.0]


@pytest.mark.asyncio
async def test_call_llm_raises_last_error_when_exhausted(make_llm_service):
    service, _ = make_llm_service([LLMError("a"), LLMError("b"), LLMNoOutputError("c")])
    with pytest.raises(LLMNoOutputError):
        await service.call_llm("extract", "system", "context", LLMExtraction)


@pytest.mark.asyncio
async def test_unavailable_provider_fails_fast(make_llm_service):
    service, provider = make_llm_service([LLMUnavailableError("no endpoint"), LLMResult(object=_extraction())])
    assert await service.extract(URL, HTML) is None
    assert len(provider.calls) == 1


@pytest.mark.asyncio
async def test_enrich_includes_existing_recipe_json(make_llm_service):
    service, provider = make_llm_service([LLMResult(object=LLMEnrichment(description="Simple rice."))])
    base = _base_recipe()
    merged = await service.enrich(base, HTML)
    assert merged.description == "Simple rice."
    assert merged.title == "Original Title"
    prompt = provider.calls[0]["user_prompt"]
    assert "Existing recipe JSON: " in prompt
    assert '"llmNotes"' in prompt
    assert provider.calls[0]["schema"] is LLMEnrichment


@pytest.mark.asyncio
async def test_enrich_disabled_by_settings(make_llm_service, llm_settings):
    settings = llm_settings.model_copy(update={"llm_enrichment_enabled": False})
    service, provider = make_llm_service([LLMResult(object=LLMEnrichment(description="x"))], settings=settings)
    assert await service.enrich(_base_recipe(), HTML) is None
    assert provider.calls == []
