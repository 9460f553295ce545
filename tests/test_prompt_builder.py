"""Tests for the prompt builder."""

from receipt_reform import EXTRACTION_POLICY, PromptBuilder


class TestPromptBuilder:
    """Tests for PromptBuilder class."""

    def test_system_prompt_uses_policy(self) -> None:
        """Test the template policy is the default system prompt."""
        builder = PromptBuilder()

        assert builder.build_system_prompt(EXTRACTION_POLICY) == EXTRACTION_POLICY

    def test_system_prompt_override(self) -> None:
        """Test a configured prompt replaces the policy."""
        builder = PromptBuilder()

        prompt = builder.build_system_prompt(EXTRACTION_POLICY, custom_prompt="Be brief.")

        assert prompt == "Be brief."

    def test_extraction_prompt_sections(self) -> None:
        """Test the user prompt carries the schema and the task."""
        builder = PromptBuilder()

        prompt = builder.build_extraction_prompt()

        assert "## Extraction Schema" in prompt
        assert "## Task" in prompt
        assert "**merchantName** (string, required)" in prompt
        assert "**discount** (number | null, optional)" in prompt
        assert "**items** (list[LineItem], optional)" in prompt
        assert "## Document" not in prompt

    def test_multi_page_note(self) -> None:
        """Test multi-page documents are announced."""
        builder = PromptBuilder()

        prompt = builder.build_extraction_prompt(page_count=3)

        assert "## Document" in prompt
        assert "3 page images" in prompt

    def test_nested_types_described(self) -> None:
        """Test nested models get their own section."""
        builder = PromptBuilder()

        description = builder.describe_schema()

        assert "### Nested Types" in description
        assert "**BankDetails** (used by 'bankDetails')" in description
        assert "**MedicalDetails** (used by 'medicalDetails')" in description
        assert "**iban** (string | null, optional)" in description

    def test_field_hints(self) -> None:
        """Test template hints are added to root and nested fields."""
        builder = PromptBuilder()

        description = builder.describe_schema(
            {"total": "Use the grand total", "bankDetails.swift": "8 or 11 characters"}
        )

        assert "[Hint: Use the grand total]" in description
        assert "[Hint: 8 or 11 characters]" in description

    def test_schema_hints_used_by_default(self) -> None:
        """Test hints declared on the schema appear without template hints."""
        builder = PromptBuilder()

        description = builder.describe_schema()

        assert "[Hint: Never calculate it from the total]" in description

    def test_without_descriptions(self) -> None:
        """Test field descriptions can be left out."""
        builder = PromptBuilder(include_field_descriptions=False)

        description = builder.describe_schema()

        assert "Name of the merchant or provider" not in description
        assert "**merchantName** (string, required)" in description
