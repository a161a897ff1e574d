"""Unit tests for recovering review JSON from raw model output."""

import pytest

from codelens.analysis.json_extraction import JSONExtractionError, extract_json


class TestExtractJSON:
    """Tests for extract_json."""

    def test_valid_json(self):
        """Should parse valid JSON without repair."""
        result = extract_json('{"summary": {"totalIssues": 0}, "suggestions": []}')
        assert result == {"summary": {"totalIssues": 0}, "suggestions": []}

    def test_markdown_code_block(self):
        """Should strip markdown code blocks."""
        result = extract_json('```json\n{"suggestions": []}\n```')
        assert result["suggestions"] == []

    def test_markdown_without_json_tag(self):
        """Should strip markdown code blocks without json tag."""
        result = extract_json('```\n{"summary": {"overallScore": 80}}\n```')
        assert result["summary"]["overallScore"] == 80

    def test_surrounding_prose(self):
        """Should extract the object from text around it."""
        text = 'Here is my review:\n{"summary": {"overallSeverity": "low"}}\nHope this helps!'
        assert extract_json(text)["summary"]["overallSeverity"] == "low"

    def test_nested_objects_kept_intact(self):
        """Greedy match must keep nested braces together."""
        text = 'Result: {"summary": {"totalIssues": 1}, "suggestions": [{"id": "a"}]} done'
        result = extract_json(text)
        assert result["suggestions"][0]["id"] == "a"

    def test_missing_commas_between_fields(self):
        """Should repair missing commas between string and number fields."""
        text = """{
            "title": "Unused import"
            "lineNumber": 3
            "severity": "low"
        }"""
        result = extract_json(text)
        assert result["title"] == "Unused import"
        assert result["lineNumber"] == 3
        assert result["severity"] == "low"

    def test_missing_comma_after_decimal_and_exponent(self):
        text = '{\n"score": 7.5\n"ratio": 1e-3\n"ok": true\n"n": 1}'
        assert extract_json(text) == {"score": 7.5, "ratio": 0.001, "ok": True, "n": 1}

    def test_missing_comma_between_array_objects(self):
        """Adjacent objects in the suggestions array get a comma."""
        text = """{
            "suggestions": [
                {"id": "a"}
                {"id": "b"}
            ]
        }"""
        result = extract_json(text)
        assert [s["id"] for s in result["suggestions"]] == ["a", "b"]

    def test_trailing_commas(self):
        """Should remove trailing commas before } and ]."""
        result = extract_json('{"mainCategories": ["bugs", "security",], "overallScore": 50,}')
        assert result["mainCategories"] == ["bugs", "security"]
        assert result["overallScore"] == 50

    def test_truncated_output_is_closed(self):
        """Output cut off at the token limit keeps what was complete."""
        text = (
            '{"summary": {"totalIssues": 2}, "suggestions": ['
            '{"id": "a", "title": "First"}, {"id": "b", "title": "Seco'
        )
        result = extract_json(text)
        assert result["summary"]["totalIssues"] == 2
        assert result["suggestions"][0]["title"] == "First"
        assert result["suggestions"][1]["title"] == "Seco"

    def test_truncated_after_separator(self):
        """A dangling comma before the cut is dropped."""
        result = extract_json('{"summary": {"overallScore": 70}, "suggestions": [{"id": "a"},')
        assert result["suggestions"] == [{"id": "a"}]

    @pytest.mark.parametrize("text", [None, "", "   \n"])
    def test_empty_response(self, text):
        """Should fail fast on empty output."""
        with pytest.raises(JSONExtractionError, match="Empty"):
            extract_json(text)

    def test_no_object(self):
        """Prose without braces is not recoverable."""
        with pytest.raises(JSONExtractionError, match="No JSON object"):
            extract_json("I could not review this file.")

    def test_array_root_rejected(self):
        """Only an object root is a review."""
        with pytest.raises(JSONExtractionError):
            extract_json('[{"id": "a"}]')

    def test_unrepairable(self):
        """Garbage between braces raises JSONExtractionError (a ValueError)."""
        with pytest.raises(ValueError):
            extract_json("{this is : not [ json }")

    def test_oversized_integer_literal(self):
        """Numbers past the int conversion limit raise JSONExtractionError, not ValueError."""
        text = '{"summary": {"overallScore": ' + "9" * 5000 + "}}"
        with pytest.raises(JSONExtractionError):
            extract_json(text)

    @pytest.mark.parametrize("text", ["[" * 100000, '{"a": ' * 100000])
    def test_deep_nesting(self, text):
        """Nesting past the parser's recursion limit is reported as unrecoverable."""
        with pytest.raises(JSONExtractionError):
            extract_json(text)
