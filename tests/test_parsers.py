"""Tests for shared provider parsing helpers."""

from datetime import datetime, timezone

import pytest

from churn_report.connectors.parsers import age_days, age_hours, clean_str, to_float, to_int, to_iso8601


class TestToIso8601:
    """All provider date encodings map to one ISO-8601 form."""

    @pytest.mark.parametrize(
        "value",
        [
            "1705312800000",  # HubSpot epoch-ms string
            1705312800000,
            1705312800,  # Intercom epoch seconds
            "1705312800",
            "2024-01-15T10:00:00Z",
            "2024-01-15T10:00:00.000+0000",  # Salesforce
            "2024-01-15T11:00:00+01:00",
            "2024-01-15T10:00:00",
        ],
    )
    def test_encodings_agree(self, value: object) -> None:
        """Epoch ms, epoch seconds and ISO variants give the same instant."""
        assert to_iso8601(value) == "2024-01-15T10:00:00.000Z"

    def test_plain_date(self) -> None:
        """Date-only values become midnight UTC."""
        assert to_iso8601("2024-03-01") == "2024-03-01T00:00:00.000Z"

    @pytest.mark.parametrize("value", [None, "", "   ", "not a date", True])
    def test_unparseable_is_none(self, value: object) -> None:
        """Missing or garbage values become None."""
        assert to_iso8601(value) is None


class TestAges:
    """Tests for age_hours and age_days."""

    def test_age_hours(self) -> None:
        """Whole hours between created and now."""
        now = datetime(2024, 1, 16, 10, 0, tzinfo=timezone.utc)
        assert age_hours("2024-01-15T10:00:00Z", now) == 24
        assert age_days("2024-01-13T10:00:00Z", now) == 3

    def test_unknown_or_future_is_zero(self) -> None:
        """Unknown dates and future dates give 0."""
        now = datetime(2024, 1, 16, tzinfo=timezone.utc)
        assert age_hours(None, now) == 0
        assert age_hours("2025-01-01T00:00:00Z", now) == 0


class TestScalars:
    """Tests for numeric and string helpers."""

    def test_to_float(self) -> None:
        assert to_float("1200.50") == 1200.5
        assert to_float("") is None
        assert to_float("n/a") is None

    def test_to_int(self) -> None:
        assert to_int("3.0") == 3
        assert to_int(None) is None

    def test_clean_str(self) -> None:
        assert clean_str("  Acme ") == "Acme"
        assert clean_str("   ") is None
        assert clean_str(42) == "42"

    @pytest.mark.parametrize("value", ["NaN", "nan", "Infinity", "-inf", float("nan"), True])
    def test_non_finite_is_none(self, value: object) -> None:
        """NaN, infinities and booleans are not numbers."""
        assert to_float(value) is None
        assert to_int(value) is None
