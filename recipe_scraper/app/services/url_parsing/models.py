"""Pydantic models for URL recipe parsing."""

from enum import Enum
from typing import Annotated, Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field, StringConstraints, field_validator


class UnitSystem(str, Enum):
    METRIC = "metric"
    US = "us"


class Strategy(str, Enum):
    JSON_LD = "json-ld"
    MICRODATA = "microdata"
    HEURISTICS = "heuristics"
    READABILITY_HEURISTICS = "readability-heuristics"
    LLM_FALLBACK = "llm-fallback"


class Ingredient(BaseModel):
    """One ingredient line split into quantity, unit, item and note."""

    model_config = ConfigDict(frozen=True)

    original: str = Field(min_length=1)
    quantity: Optional[float] = Field(None, ge=0)
    unit: Optional[str] = None
    item: Optional[str] = None
    note: Optional[str] = None

    @field_validator("original")
    @classmethod
    def validate_original(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("Ingredient original text must not be blank")
        return value


class Step(BaseModel):
    model_config = ConfigDict(frozen=True)

    n: int = Field(ge=1)
    text: str


class RecipeYield(BaseModel):
    model_config = ConfigDict(frozen=True)

    servings: Optional[int] = Field(None, ge=0)
    original: Optional[str] = None


class RecipeTime(BaseModel):
    """Timing in whole minutes."""

    model_config = ConfigDict(frozen=True)

    prep: Optional[int] = Field(None, ge=0)
    cook: Optional[int] = Field(None, ge=0)
    total: Optional[int] = Field(None, ge=0)


class DietFlags(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    vegan: Optional[bool] = None
    vegetarian: Optional[bool] = None
    gluten_free: Optional[bool] = Field(None, alias="glutenFree")
    dairy_free: Optional[bool] = Field(None, alias="dairyFree")


class RecipeSource(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    url: str
    domain: Optional[str] = None
    fetched_at: str = Field(alias="fetchedAt")


class Recipe(BaseModel):
    """The canonical, validated recipe record.

    Instances are frozen: enrichment builds a new Recipe rather than editing one.
    Serialize with ``model_dump(by_alias=True)`` to get the public field names
    (``yield``, ``dietFlags``, ``llmNotes``).
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    title: Optional[str] = None
    description: Optional[str] = None
    image: Optional[str] = None
    author: Optional[str] = None
    yield_: RecipeYield = Field(default_factory=RecipeYield, alias="yield")
    time: RecipeTime = Field(default_factory=RecipeTime)
    ingredients: List[Ingredient] = Field(default_factory=list)
    steps: List[Step] = Field(default_factory=list)
    tags: List[str] = Field(default_factory=list)
    diet_flags: DietFlags = Field(default_factory=DietFlags, alias="dietFlags")
    units: UnitSystem = UnitSystem.METRIC
    source: RecipeSource
    llm_notes: Optional[Any] = Field(None, alias="llmNotes")

    @field_validator("steps")
    @classmethod
    def validate_steps(cls, value: List[Step]) -> List[Step]:
        for idx, step in enumerate(value, start=1):
            if step.n != idx:
                raise ValueError(f"Step numbering must be contiguous from 1 (got {step.n} at {idx})")
        return value

    @field_validator("tags")
    @classmethod
    def validate_tags(cls, value: List[str]) -> List[str]:
        seen = set()
        tags: List[str] = []
        for tag in value:
            clean = tag.strip().lower()
            if clean and clean not in seen:
                seen.add(clean)
                tags.append(clean)
        return tags

    def is_structurally_complete(self) -> bool:
        return bool(self.ingredients) and bool(self.steps)


class HeuristicExtraction(BaseModel):
    """Raw text pulled from common recipe markup, before normalization."""

    title: Optional[str] = None
    image: Optional[str] = None
    ingredients: List[str] = Field(default_factory=list)
    steps: List[str] = Field(default_factory=list)

    @property
    def has_structured_bits(self) -> bool:
        return bool(self.ingredients) and bool(self.steps)


class ParseResult(BaseModel):
    """Result of a recipe parsing attempt."""

    success: bool
    recipe: Optional[Recipe] = None
    parser_strategy: Optional[Strategy] = None
    used_llm: bool = False
    llm_enriched: bool = False
    warnings: List[str] = Field(default_factory=list)
    error_code: Optional[str] = None
    error_message: Optional[str] = None


NonEmptyStr = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1)]


class LLMExtraction(BaseModel):
    """Shape the model must return when extracting a whole recipe."""

    title: Optional[NonEmptyStr] = None
    description: Optional[NonEmptyStr] = None
    servings_text: Optional[NonEmptyStr] = None
    servings: Optional[int] = Field(None, gt=0)
    prep_minutes: Optional[float] = Field(None, ge=0)
    cook_minutes: Optional[float] = Field(None, ge=0)
    total_minutes: Optional[float] = Field(None, ge=0)
    ingredients: List[NonEmptyStr] = Field(default_factory=list)
    steps: List[NonEmptyStr] = Field(default_factory=list)
    notes: List[NonEmptyStr] = Field(default_factory=list)
    tags: List[NonEmptyStr] = Field(default_factory=list)
    cuisines: List[NonEmptyStr] = Field(default_factory=list)
    methods: List[NonEmptyStr] = Field(default_factory=list)


class LLMEnrichment(BaseModel):
    """Shape the model must return when filling gaps in an existing recipe."""

    title: Optional[NonEmptyStr] = None
    description: Optional[NonEmptyStr] = None
    servings_text: Optional[NonEmptyStr] = None
    servings: Optional[int] = Field(None, gt=0)
    prep_minutes: Optional[float] = Field(None, ge=0)
    cook_minutes: Optional[float] = Field(None, ge=0)
    total_minutes: Optional[float] = Field(None, ge=0)
    tags: Optional[List[NonEmptyStr]] = None
    cuisines: Optional[List[NonEmptyStr]] = None
    methods: Optional[List[NonEmptyStr]] = None


class TokenUsage(BaseModel):
    prompt_tokens: Optional[int] = None
    completion_tokens: Optional[int] = None
    total_tokens: Optional[int] = None
