"""Pydantic models for URL recipe extraction."""

from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


class RecipeDraft(BaseModel):
    """A recipe as extracted from a page, before the caller stores it."""

    model_config = ConfigDict(frozen=True)

    title: str = ""
    description: Optional[str] = None
    image: Optional[str] = None
    prep_time: Optional[str] = None
    cook_time: Optional[str] = None
    total_time: Optional[str] = None
    servings: Optional[Union[int, float]] = None
    difficulty: Optional[str] = None
    ingredients: List[str] = Field(default_factory=list)
    instructions: List[str] = Field(default_factory=list)
    tags: List[str] = Field(default_factory=list)
    source_url: Optional[str] = None


class ExtractionResult(BaseModel):
    """Outcome of one extraction strategy (or of the whole pipeline)."""

    model_config = ConfigDict(frozen=True)

    recipe: Optional[RecipeDraft] = None
    confidence: float = Field(0.0, ge=0.0, le=1.0)
    method: str
    issues: List[str] = Field(default_factory=list)


class NormalizationResult(BaseModel):
    """A repaired copy of a JSON-LD Recipe node."""

    model_config = ConfigDict(frozen=True)

    recipe: Dict[str, Any]
    improved: bool = False
    issues: List[str] = Field(default_factory=list)


class ImageCandidate(BaseModel):
    url: str
    score: float = 0.0
    source: str = "img"


class FetchResult(BaseModel):
    """A successfully fetched page."""

    data: str
    status: int
    headers: Dict[str, str] = Field(default_factory=dict)
    attempts: int
    final_user_agent: str
    url: Optional[str] = None
