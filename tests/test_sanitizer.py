"""
Unit tests for the model output sanitizer.

Each cleanup stage is tested on its own, then the composed pipeline.
"""

import re

import pytest

pytestmark = pytest.mark.unit


MESSY_INPUTS = [
    "",
    "   ",
    "no json here",
    '{"a": 1}',
    '  {"a": [1, 2,],}  ',
    "```json\n{\"a\": 1}\n```",
    "```\n```",
    "``````",
    "}{",
    "{,}",
    "{ , , }",
    "// just a comment",
    "prefix // comment\n{\"a\": 1,} // trailing\nsuffix",
    "Sure!\n```json\n{\"a\": {\"b\": [1,],},}\n```\nThanks",
    "```json\n```json\n{\"nested\": true}\n```\n```",
    '{"url": "https://example.com/a//b"}',
    "{\r\n  \"a\": 1, // note\r\n}\r\n",
]


class TestStages:
    """Tests for the individual sanitize stages."""

    def test_strip_code_fences_tagged(self):
        """Verify a language-tagged fence is removed."""
        from contract_risk.sanitizer import strip_code_fences

        assert strip_code_fences('```json\n{"a": 1}\n```') == '{"a": 1}'

    def test_strip_code_fences_untagged(self):
        """Verify a bare fence is removed."""
        from contract_risk.sanitizer import strip_code_fences

        assert strip_code_fences('```\n{"a": 1}\n```') == '{"a": 1}'

    def test_strip_code_fences_ignores_partial_fence(self):
        """Verify text not fully wrapped in a fence is left alone."""
        from contract_risk.sanitizer import strip_code_fences

        text = 'Result:\n```json\n{"a": 1}\n```'
        assert strip_code_fences(text) == text

    def test_strip_line_comments(self):
        """Verify // comments are removed up to the end of the line."""
        from contract_risk.sanitizer import strip_line_comments

        text = '{\n  "a": 1, // the answer\n  // whole line\n  "b": 2\n}'
        cleaned = strip_line_comments(text)

        assert "answer" not in cleaned
        assert "whole line" not in cleaned
        assert '"b": 2' in cleaned

    def test_strip_line_comments_after_comma(self):
        """Verify a comment glued to the preceding comma is removed."""
        from contract_risk.sanitizer import strip_line_comments

        text = '{"overallRisk": "high",// model note\n "riskScore": 90,// score\n}'

        assert strip_line_comments(text) == '{"overallRisk": "high",\n "riskScore": 90,\n}'

    def test_strip_line_comments_keeps_urls(self):
        """Verify URLs inside values are not treated as comments."""
        from contract_risk.sanitizer import strip_line_comments

        text = '{"source": "https://example.com/terms"}'
        assert strip_line_comments(text) == text

    def test_strip_trailing_commas(self):
        """Verify commas before closing brackets are removed."""
        from contract_risk.sanitizer import strip_trailing_commas

        assert strip_trailing_commas('{"a": [1, 2, ], "b": {"c": 3,\n},}') == '{"a": [1, 2], "b": {"c": 3}}'

    def test_strip_trailing_commas_keeps_separators(self):
        """Verify ordinary separating commas survive."""
        from contract_risk.sanitizer import strip_trailing_commas

        text = '{"a": [1, 2], "b": 3}'
        assert strip_trailing_commas(text) == text

    def test_isolate_object_drops_prose(self):
        """Verify text outside the first { and last } is discarded."""
        from contract_risk.sanitizer import isolate_object

        assert isolate_object('Here you go: {"a": {"b": 1}} Cheers!') == '{"a": {"b": 1}}'

    def test_isolate_object_without_braces(self):
        """Verify text without an object span is returned trimmed."""
        from contract_risk.sanitizer import isolate_object

        assert isolate_object("  nothing to see  ") == "nothing to see"
        assert isolate_object("} backwards {") == "} backwards {"


class TestSanitize:
    """Tests for the composed sanitize pipeline."""

    @pytest.mark.parametrize("raw", MESSY_INPUTS)
    def test_sanitize_is_idempotent(self, raw: str):
        """Verify sanitize(sanitize(x)) == sanitize(x)."""
        from contract_risk.sanitizer import sanitize

        once = sanitize(raw)
        assert sanitize(once) == once

    def test_sanitize_strips_fence(self):
        """Verify a fenced payload comes back as the inner object."""
        from contract_risk.sanitizer import sanitize

        inner = '{"overallRisk": "low", "riskScore": 10}'
        assert sanitize(f"```json\n{inner}\n```") == inner

    def test_sanitize_removes_trailing_commas(self):
        """Verify no comma is left directly before ] or }."""
        from contract_risk.sanitizer import sanitize

        result = sanitize('{"a":[1,2,],}')

        assert re.search(r",\s*[\]}]", result) is None
        assert result == '{"a":[1,2]}'

    def test_sanitize_recovers_wrapped_reply(self):
        """Verify prose around a fenced payload is discarded."""
        from contract_risk.sanitizer import sanitize

        raw = (
            "Here is the result:\n```json\n"
            '{"overallRisk":"high","riskScore":90,"summary":"bad"}'
            "\n```\nHope this helps!"
        )

        assert sanitize(raw) == '{"overallRisk":"high","riskScore":90,"summary":"bad"}'

    def test_sanitize_never_raises_on_empty(self):
        """Verify empty or missing input yields an empty string."""
        from contract_risk.sanitizer import sanitize

        assert sanitize("") == ""
        assert sanitize(None) == ""

    def test_sanitize_returns_unrecoverable_text_trimmed(self):
        """Verify text with nothing to clean is returned unchanged."""
        from contract_risk.sanitizer import sanitize

        assert sanitize("  I cannot help with that.  ") == "I cannot help with that."
