"""Prompt builder for receipt extraction."""

from receipt_reform.schemas.fields import FieldKind, FieldSpec, field_specs
from receipt_reform.schemas.receipt import ReceiptRecord


class PromptBuilder:
    """Builds the text part of an extraction request from the field schema."""

    def __init__(self, include_field_descriptions: bool = True) -> None:
        """Initialize the prompt builder.

        Args:
            include_field_descriptions: Whether to include field descriptions in prompts
        """
        self.include_field_descriptions = include_field_descriptions

    def build_system_prompt(self, policy: str, custom_prompt: str | None = None) -> str:
        """Build the system prompt.

        Args:
            policy: Extraction policy of the active template
            custom_prompt: Optional override taken from the configuration

        Returns:
            The system prompt string
        """
        return custom_prompt or policy

    def build_extraction_prompt(
        self,
        field_hints: dict[str, str] | None = None,
        page_count: int = 1,
    ) -> str:
        """Build the user prompt that accompanies the document pages.

        Args:
            field_hints: Optional hints keyed by wire field name
            page_count: Number of page images attached to the request

        Returns:
            The formatted extraction prompt
        """
        parts: list[str] = []

        schema_desc = self.describe_schema(field_hints)
        parts.append(f"## Extraction Schema\n\n{schema_desc}")

        if page_count > 1:
            parts.append(
                "## Document\n\n"
                f"The document is attached as {page_count} page images, in page order. "
                "Treat them as one document."
            )

        parts.append(
            "## Task\n\n"
            "Extract the structured data from the attached document according to the schema. "
            "Use null for fields that are not present. "
            "Return only the extracted data as JSON."
        )

        return "\n\n".join(parts)

    def describe_schema(self, field_hints: dict[str, str] | None = None) -> str:
        """Generate a human-readable description of the record schema.

        Args:
            field_hints: Optional hints keyed by wire field name; nested
                fields are addressed as ``parent.child``

        Returns:
            A formatted schema description
        """
        field_hints = field_hints or {}
        lines = [f"**{ReceiptRecord.__name__}**"]
        if ReceiptRecord.__doc__:
            lines.append(f"\n{ReceiptRecord.__doc__.strip()}")
        lines.append("\nFields:")

        nested: list[FieldSpec] = []
        for spec in field_specs(ReceiptRecord):
            lines.append(self._describe_field(spec, field_hints.get(spec.alias), indent=1))
            if spec.children:
                nested.append(spec)

        if nested:
            lines.append("\n### Nested Types")
            for parent in nested:
                assert parent.model is not None
                lines.append(f"\n**{parent.model.__name__}** (used by '{parent.alias}')")
                for child in parent.children:
                    hint = field_hints.get(f"{parent.alias}.{child.alias}")
                    lines.append(self._describe_field(child, hint, indent=1))

        return "\n".join(lines)

    def _describe_field(self, spec: FieldSpec, hint: str | None = None, indent: int = 0) -> str:
        """Describe a single field.

        Args:
            spec: Field descriptor
            hint: Optional extraction hint overriding the schema hint
            indent: Indentation level

        Returns:
            Formatted field description
        """
        indent_str = "  " * indent
        type_str = self._format_type(spec)
        required_str = "required" if spec.required else "optional"

        parts = [f"{indent_str}- **{spec.alias}** ({type_str}, {required_str})"]

        if self.include_field_descriptions and spec.description:
            parts.append(f": {spec.description}")

        effective_hint = hint or spec.hint
        if effective_hint:
            parts.append(f" [Hint: {effective_hint}]")

        return "".join(parts)

    def _format_type(self, spec: FieldSpec) -> str:
        if spec.kind is FieldKind.ARRAY and spec.model is not None:
            type_str = f"list[{spec.model.__name__}]"
        elif spec.kind is FieldKind.OBJECT and spec.model is not None:
            type_str = spec.model.__name__
        else:
            type_str = spec.kind.value
        return f"{type_str} | null" if spec.nullable else type_str
