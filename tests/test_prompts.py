"""
Unit tests for prompt construction.
"""

import pytest

pytestmark = pytest.mark.unit


class TestPromptBuilder:
    """Tests for PromptBuilder."""

    def test_embeds_title_and_text(self):
        """Verify the document title and contract text appear in the prompt."""
        from contract_risk.prompts import PromptBuilder

        prompt = PromptBuilder(max_chars=1000).build("The Tenant shall pay rent.", "Flat Lease")

        assert "Contract Title: Flat Lease" in prompt
        assert "The Tenant shall pay rent." in prompt

    def test_embeds_schema_field_names(self):
        """Verify every top-level Analysis field is named in the schema."""
        from contract_risk.prompts import PromptBuilder
        from contract_risk.models import Analysis

        prompt = PromptBuilder().build("text", "title")

        for field in Analysis.model_fields.values():
            assert f'"{field.alias}"' in prompt

    def test_embeds_enum_values(self):
        """Verify the enum vocabularies are spelled out for the model."""
        from contract_risk.prompts import PromptBuilder
        from contract_risk.models import AlertIcon, ContractType, ObligationCategory, RiskCategory

        prompt = PromptBuilder().build("text", "title")

        for enum in (ContractType, RiskCategory, ObligationCategory, AlertIcon):
            for member in enum:
                assert f'"{member.value}"' in prompt

    def test_instructs_json_only(self):
        """Verify the prompt forbids prose outside the payload."""
        from contract_risk.prompts import PromptBuilder

        prompt = PromptBuilder().build("text", "title")

        assert prompt.rstrip().endswith("Return ONLY valid JSON, no additional text")

    def test_truncates_to_prefix(self):
        """Verify only the first max_chars characters are embedded."""
        from contract_risk.prompts import PromptBuilder

        text = "A" * 10 + "B" * 10
        prompt = PromptBuilder(max_chars=10).build(text, "title")

        assert "A" * 10 in prompt
        assert "B" not in prompt.split("Contract Text:")[1].split("Provide your analysis")[0]

    def test_build_is_deterministic(self):
        """Verify the same input always yields the same prompt."""
        from contract_risk.prompts import PromptBuilder

        builder = PromptBuilder(max_chars=50)

        assert builder.build("x" * 80, "T") == builder.build("x" * 80, "T")

    def test_braces_in_contract_are_preserved(self):
        """Verify braces in the contract do not break formatting."""
        from contract_risk.prompts import PromptBuilder

        prompt = PromptBuilder().build("Fee: {amount} per {unit}", "T")

        assert "Fee: {amount} per {unit}" in prompt

    def test_default_limit_from_settings(self):
        """Verify the default truncation bound comes from settings."""
        from contract_risk.prompts import PromptBuilder
        from config.settings import settings

        assert PromptBuilder().max_chars == settings.MAX_CONTRACT_CHARS

    def test_build_for_request(self):
        """Verify building from an AnalysisRequest matches build()."""
        from contract_risk.prompts import PromptBuilder
        from contract_risk.models import AnalysisRequest

        builder = PromptBuilder(max_chars=5)
        request = AnalysisRequest(contract_text="abcdefgh", document_title="T")

        assert builder.build_for(request) == builder.build("abcdefgh", "T")
