"""Tests for company-name normalization."""

import pytest

from churn_report.matching import normalize_key


class TestNormalizeKey:
    """Tests for normalize_key."""

    @pytest.mark.parametrize(
        ("name", "expected"),
        [
            ("Acme Corp, Inc.", "acme"),
            ("ACME CORP", "acme"),
            ("Globex Corporation", "globex"),
            ("Initech LLC", "initech"),
            ("Umbrella  Co.", "umbrella"),
            ("Stark Industries Ltd.", "stark industries"),
            ("Wayne Enterprises PLC", "wayne enterprises"),
            ("The Company Store", "the store"),
        ],
    )
    def test_strips_case_punctuation_and_suffixes(self, name: str, expected: str) -> None:
        """Lowercases, drops punctuation and whole-word corporate suffixes."""
        assert normalize_key(name) == expected

    @pytest.mark.parametrize(
        "name",
        ["Acme Corp, Inc.", "  Foo   Bar  ", "Incorporated Widgets Co", "Co-op Ltd", "Inc.", "", "Ünïcode Café"],
    )
    def test_idempotent(self, name: str) -> None:
        """Applying normalize_key twice gives the same key."""
        once = normalize_key(name)
        assert normalize_key(once) == once

    def test_suffix_only_as_whole_word(self) -> None:
        """Suffix letters inside a word are kept ('Cohort' keeps 'co')."""
        assert normalize_key("Cohort Incubator") == "cohort incubator"

    def test_collapses_whitespace(self) -> None:
        """Runs of whitespace collapse to one space and ends are trimmed."""
        assert normalize_key("  Big \t Data   Inc ") == "big data"

    def test_empty_when_only_suffix(self) -> None:
        """A name made only of suffixes normalizes to the empty string."""
        assert normalize_key("Inc.") == ""
