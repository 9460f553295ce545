"""Configuration classes for extraction and export."""

from __future__ import annotations

import os

from pydantic import BaseModel, Field

from receipt_reform.core.exceptions import ConfigurationError

# Upload limits enforced before anything reaches the extractor
MAX_UPLOAD_BYTES = 10 * 1024 * 1024
PDF_MIME_TYPE = "application/pdf"
IMAGE_MIME_PREFIX = "image/"

DEFAULT_MODEL = "gemini-2.5-flash"
LEGACY_API_KEY_ENV = "API_KEY"


class ExtractionConfig(BaseModel):
    """Configuration for the extraction request."""

    # LLM settings
    model: str = Field(
        default=DEFAULT_MODEL,
        description="Document-understanding model used for extraction",
    )
    api_key_env: str = Field(
        default="GEMINI_API_KEY",
        description="Environment variable holding the API key",
    )
    temperature: float = Field(
        default=0.0,
        ge=0.0,
        le=2.0,
        description="LLM temperature for extraction (lower = more deterministic)",
    )
    max_tokens: int | None = Field(
        default=None,
        description="Maximum tokens for LLM response",
    )

    # Client cache settings
    use_cache: bool = Field(
        default=False,
        description="Whether the client may serve responses from its cache",
    )
    cache_dir: str = Field(default="cache", description="Directory for cached responses")
    cache_ttl_hours: float | None = Field(default=24.0, description="Cache TTL in hours")

    # PDF rasterization
    pdf_render_scale: float = Field(
        default=2.0,
        gt=0.0,
        description="Scale factor used when rendering PDF pages to images",
    )
    max_pdf_pages: int = Field(
        default=5,
        ge=1,
        description="Maximum number of PDF pages sent to the model",
    )

    # Prompt settings
    system_prompt: str | None = Field(
        default=None,
        description="Custom system prompt override",
    )
    include_field_descriptions: bool = Field(
        default=True,
        description="Include field descriptions in the prompt",
    )

    def resolve_api_key(self) -> str:
        """Read the API key from the environment.

        Raises:
            ConfigurationError: If no key is configured.
        """
        api_key = os.getenv(self.api_key_env) or os.getenv(LEGACY_API_KEY_ENV)
        if not api_key:
            raise ConfigurationError(
                f"{self.api_key_env} environment variable is not set"
            )
        return api_key


class ExportConfig(BaseModel):
    """Configuration for the print export."""

    settle_delay_ms: int = Field(
        default=1000,
        ge=0,
        description="Delay before the print dialog is triggered, so fonts can load",
    )
    width: int = Field(default=900, gt=0, description="Print preview window width")
    height: int = Field(default=1200, gt=0, description="Print preview window height")
    locale: str = Field(default="en_US", description="Locale used to format amounts")
    review_threshold: float = Field(
        default=0.8,
        ge=0.0,
        le=1.0,
        description="Records at or below this confidence are flagged for review",
    )

    # Static issuer block printed under the totals
    issuer_name: str | None = Field(default=None, description="Issuing company name")
    issuer_tagline: str | None = Field(default=None, description="Line under the issuer name")
    issuer_footer_lines: list[str] = Field(
        default_factory=list,
        description="Payment instructions and contact lines of the issuer",
    )
