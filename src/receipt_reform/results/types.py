"""Result types for extraction outputs."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field


class ExtractionResult(BaseModel):
    """Raw outcome of one extraction request.

    ``candidate`` is shaped like the record schema but its values are
    untrusted; pass it through :func:`receipt_reform.results.normalizer.normalize`
    before use.
    """

    candidate: dict[str, Any] = Field(description="Model output keyed by wire field name")

    # Metadata
    model_used: str | None = Field(
        default=None,
        description="LLM model used for extraction",
    )
    cached: bool = Field(
        default=False,
        description="Whether result was served from cache",
    )
    tokens_used: int | None = Field(
        default=None,
        description="Total tokens used for extraction",
    )
    cost_usd: float | None = Field(
        default=None,
        description="Estimated cost in USD",
    )
    page_count: int = Field(default=1, ge=1, description="Number of page images sent")
    raw_response: str | None = Field(
        default=None,
        description="Raw LLM response for debugging",
    )
