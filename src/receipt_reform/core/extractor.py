"""Receipt extractor: sends a document to the document-understanding model."""

import json
import logging
from typing import Any

import pypdfium2 as pdfium
from PIL import Image
from pydantic import BaseModel, ValidationError
from seeds_clients import GoogleClient, Message
from seeds_clients.core.base_client import BaseClient

from receipt_reform.core.config import PDF_MIME_TYPE, ExtractionConfig
from receipt_reform.core.exceptions import (
    ExtractionError,
    ExtractionValidationError,
    LLMError,
    ServiceError,
    TransportError,
)
from receipt_reform.core.templates import ExtractionTemplate, receipt_template
from receipt_reform.prompts.builder import PromptBuilder
from receipt_reform.results.normalizer import normalize
from receipt_reform.results.types import ExtractionResult
from receipt_reform.schemas.fields import build_candidate_model
from receipt_reform.schemas.receipt import ReceiptRecord

logger = logging.getLogger(__name__)

# Exception class names that mean the request never got an answer
TRANSPORT_ERROR_NAMES = frozenset(
    {
        "ConnectionError",
        "ConnectError",
        "TimeoutError",
        "Timeout",
        "ConnectTimeout",
        "ReadTimeout",
        "TimeoutException",
        "NetworkError",
        "APIConnectionError",
        "APITimeoutError",
    }
)

PageImage = bytes | Image.Image


class ReceiptExtractor:
    """Extracts a structured receipt record from an image or PDF.

    Makes exactly one request per call; retrying is left to the caller.

    Example:
        ```python
        from receipt_reform import ReceiptExtractor, load_document

        extractor = ReceiptExtractor()  # reads GEMINI_API_KEY
        document = load_document("receipt.jpg")
        record = extractor.extract(document.content, document.mime_type)
        print(record.total, record.currency)
        ```
    """

    _client: BaseClient

    def __init__(
        self,
        client: BaseClient | None = None,
        config: ExtractionConfig | None = None,
        template: ExtractionTemplate | None = None,
    ) -> None:
        """Initialize the extractor.

        Args:
            client: Pre-configured seeds-clients client. When omitted a
                GoogleClient is built from the configured API key.
            config: Extraction configuration.
            template: Extraction instructions; defaults to the receipt template.

        Raises:
            ConfigurationError: If no client is given and no API key is set.
        """
        self.config = config or ExtractionConfig()
        self.template = template or receipt_template()

        if client is not None:
            self._client = client
            self.model = client.model
        else:
            self.model = self.config.model
            self._client = GoogleClient(
                api_key=self.config.resolve_api_key(),
                model=self.config.model,
                cache_dir=self.config.cache_dir,
                ttl_hours=self.config.cache_ttl_hours,
            )

        self._prompt_builder = PromptBuilder(
            include_field_descriptions=self.config.include_field_descriptions,
        )

    def invoke(self, document: bytes, mime_type: str) -> ExtractionResult:
        """Send one document to the model and return the raw candidate.

        Args:
            document: Image or PDF bytes, already validated by intake.
            mime_type: Media type of ``document``.

        Returns:
            ExtractionResult whose ``candidate`` still has to be normalized.

        Raises:
            TransportError: If the request failed in transit.
            ServiceError: If the service reported a failure.
            ExtractionValidationError: If the answer is not parseable JSON.
        """
        pages = self._document_pages(document, mime_type)
        messages = self._build_messages(pages)

        llm_kwargs: dict[str, Any] = {"temperature": self.config.temperature}
        if self.config.max_tokens:
            llm_kwargs["max_tokens"] = self.config.max_tokens

        logger.debug(
            "Extraction request (model=%s, mime=%s, pages=%d)",
            self.model,
            mime_type,
            len(pages),
        )
        response = self._call_llm(messages, **llm_kwargs)
        candidate = self._parse_candidate(response)

        return ExtractionResult(
            candidate=candidate,
            model_used=response.model,
            cached=bool(response.cached),
            tokens_used=response.usage.total_tokens if response.usage else None,
            cost_usd=response.tracking.cost_usd if response.tracking else None,
            page_count=len(pages),
            raw_response=response.content,
        )

    def extract(self, document: bytes, mime_type: str) -> ReceiptRecord:
        """Invoke the model and normalize its answer.

        Raises:
            ExtractionError: If the request fails.
            NormalizationError: If required fields are missing.
        """
        result = self.invoke(document, mime_type)
        return normalize(result.candidate)

    def _build_messages(self, pages: list[PageImage]) -> list[Message]:
        system_message = self._prompt_builder.build_system_prompt(
            self.template.system_prompt,
            custom_prompt=self.config.system_prompt,
        )
        text_prompt = self._prompt_builder.build_extraction_prompt(
            field_hints=self.template.field_hints,
            page_count=len(pages),
        )

        content: list[dict[str, Any]] = [{"type": "text", "text": text_prompt}]
        for page in pages:
            content.append({"type": "image", "source": page})

        return [
            Message(role="system", content=system_message),
            Message(role="user", content=content),
        ]

    def _document_pages(self, document: bytes, mime_type: str) -> list[PageImage]:
        """Images go as-is; PDFs are rendered page by page."""
        if mime_type != PDF_MIME_TYPE:
            return [document]

        try:
            pdf_doc = pdfium.PdfDocument(document)
        except pdfium.PdfiumError as e:
            raise ExtractionError(f"Cannot read PDF document: {e}", last_error=e) from e

        try:
            total_pages = len(pdf_doc)
            pages_to_render = min(total_pages, self.config.max_pdf_pages)
            if total_pages > pages_to_render:
                logger.warning(
                    "PDF has %d pages, sending only the first %d", total_pages, pages_to_render
                )
            pages: list[PageImage] = []
            for page_index in range(pages_to_render):
                bitmap = pdf_doc[page_index].render(scale=self.config.pdf_render_scale)
                pages.append(bitmap.to_pil())
        except pdfium.PdfiumError as e:
            raise ExtractionError(f"Cannot render PDF page: {e}", last_error=e) from e
        finally:
            pdf_doc.close()

        if not pages:
            raise ExtractionError("PDF document has no pages")
        return pages

    def _call_llm(self, messages: list[Message], **llm_kwargs: Any) -> Any:
        """Call the client once and classify failures.

        Raises:
            ExtractionValidationError: If the structured output did not validate.
            TransportError: If the request failed in transit.
            ServiceError: If the service reported a failure.
        """
        try:
            return self._client.generate(
                messages,
                use_cache=self.config.use_cache,
                response_format=build_candidate_model(ReceiptRecord),
                **llm_kwargs,
            )
        except ValidationError as e:
            logger.error("Structured output failed validation: %s", e)
            raise ExtractionValidationError(
                f"Model output does not match the schema: {e}",
                validation_errors=e.errors(),
            ) from e
        except Exception as e:
            error_cls: type[LLMError] = (
                TransportError if _is_transport_error(e) else ServiceError
            )
            logger.error("LLM call failed (%s): %s", error_cls.__name__, e)
            raise error_cls(f"LLM call failed: {e}", last_error=e) from e

    def _parse_candidate(self, response: Any) -> dict[str, Any]:
        """Read the candidate from the response text, falling back to parsed data."""
        content = response.content
        if isinstance(content, str) and content.strip():
            try:
                data = json.loads(_strip_code_fence(content))
            except json.JSONDecodeError:
                data = None
            if isinstance(data, dict):
                return data

        parsed = response.parsed
        if isinstance(parsed, BaseModel):
            return parsed.model_dump(by_alias=True)

        logger.error("Model returned non-parseable output")
        raise ExtractionValidationError(
            "No parseable JSON received from the model",
            raw_response=content if isinstance(content, str) else None,
        )

    @property
    def client(self) -> BaseClient:
        return self._client


def _is_transport_error(error: Exception) -> bool:
    if isinstance(error, (ConnectionError, TimeoutError)):
        return True
    return any(cls.__name__ in TRANSPORT_ERROR_NAMES for cls in type(error).__mro__)


def _strip_code_fence(text: str) -> str:
    stripped = text.strip()
    if stripped.startswith("```"):
        stripped = stripped.split("\n", 1)[1] if "\n" in stripped else ""
        if stripped.rstrip().endswith("```"):
            stripped = stripped.rstrip()[:-3]
    return stripped
