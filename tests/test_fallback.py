from kitakita.services.agents.fallback import (
    FALLBACK_CONFIDENCE,
    fallback_response,
    is_fallback,
    parse_ai_list,
    parse_ai_response,
    structured_or_fallback,
)


class TestParseAiResponse:
    def test_extracts_object_from_surrounding_text(self):
        raw = 'Here you go:\n```json\n{"score": 82, "grade": "B"}\n```\nHope this helps!'
        assert parse_ai_response(raw) == {"score": 82, "grade": "B"}

    def test_text_without_object_is_wrapped_unparsed(self):
        result = parse_ai_response("Save more, spend less.")
        assert result["content"] == "Save more, spend less."
        assert result["confidence"] == 0.6
        assert result["parsed"] is False
        assert "timestamp" in result
        assert is_fallback(result)

    def test_undecodable_span_is_marked_parsing_failed(self):
        result = parse_ai_response("{not: valid json}")
        assert result["error"] == "parsing_failed"
        assert result["confidence"] == 0.3
        assert is_fallback(result)

    def test_none_is_treated_as_empty_text(self):
        assert parse_ai_response(None)["parsed"] is False


class TestParseAiList:
    def test_extracts_array(self):
        assert parse_ai_list('Sub-problems: ["budget", "savings"]') == ["budget", "savings"]

    def test_returns_none_without_array(self):
        assert parse_ai_list("nothing here") is None
        assert parse_ai_list("[broken") is None


class TestStructuredOrFallback:
    fallback = {"recommendations": ["Build an emergency fund"], "monthly_income": 0}

    def test_complete_result_passes_through(self):
        parsed = {"recommendations": ["a"], "monthly_income": 1000}
        assert structured_or_fallback(parsed, ("recommendations", "monthly_income"), self.fallback) is parsed

    def test_missing_key_yields_marked_fallback_with_same_keys(self):
        result = structured_or_fallback({"recommendations": []}, ("recommendations", "monthly_income"), self.fallback)
        assert set(result) == set(self.fallback) | {"fallback"}
        assert result["fallback"] is True

    def test_parse_error_is_carried_over(self):
        parsed = parse_ai_response("{oops}")
        result = structured_or_fallback(parsed, ("recommendations",), self.fallback)
        assert result["fallback"] is True
        assert result["error"] == "parsing_failed"

    def test_fallback_template_is_not_mutated(self):
        structured_or_fallback({}, ("recommendations",), self.fallback)
        assert "fallback" not in self.fallback


def test_fallback_response_shape():
    result = fallback_response({"analysis": "goals"})
    assert result["fallback"] is True
    assert result["confidence"] == FALLBACK_CONFIDENCE
    assert result["context"] == {"analysis": "goals"}
    assert result["content"]
    assert is_fallback(result)


def test_plain_dict_is_not_fallback():
    assert not is_fallback({"score": 1})
    assert not is_fallback(["not", "a", "dict"])
