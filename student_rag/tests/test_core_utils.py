"""Tests for core utilities: text normalization and previews."""

from student_rag.core.errors import ConfigurationError, ProviderError, RetrievalError
from student_rag.core.text import normalize, preview


class TestTextNormalize:
    """Test text normalization function."""

    def test_collapses_mixed_whitespace(self):
        text = "Quiz\t\t  score\n\n  \tfor\t \n 1001"
        assert normalize(text) == "Quiz score for 1001"

    def test_normalizes_unicode_quotes(self):
        """Test that unicode quotes are normalized to ASCII."""
        text = "“Good work” and ‘on time’"
        assert normalize(text) == "\"Good work\" and 'on time'"

    def test_normalizes_dashes(self):
        assert normalize("term–1 and term—2") == "term-1 and term-2"

    def test_nfkc_folds_compatibility_characters(self):
        # Full-width digits become ASCII digits
        assert normalize("１００１") == "1001"

    def test_empty(self):
        assert normalize("") == ""
        assert normalize(None) == ""


class TestPreview:
    def test_truncates(self):
        assert preview("a" * 300) == "a" * 200
        assert preview("abcdef", limit=3) == "abc"

    def test_short_and_empty(self):
        assert preview("short") == "short"
        assert preview("") == ""


def test_error_hierarchy():
    assert issubclass(ConfigurationError, RetrievalError)
    assert issubclass(ProviderError, RetrievalError)
