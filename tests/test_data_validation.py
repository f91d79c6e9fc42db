import pytest

from services.data_validation import (
    conversion_rate_checks,
    has_real_conversion_data,
    log_missing_data_warning,
    looks_estimated,
    sanitize_metrics,
    validate_metrics,
)


class TestValidateMetrics:
    def test_clean_data(self):
        r = validate_metrics({"spend": 100, "impressions": 1000, "clicks": 50}, "test")
        assert r.is_valid
        assert r.has_real_data
        assert r.warnings == []
        assert r.errors == []

    def test_clicks_above_impressions_warns(self):
        r = validate_metrics({"impressions": 10, "clicks": 20}, "test")
        assert r.is_valid
        assert len(r.warnings) == 1

    def test_negative_spend_is_invalid(self):
        r = validate_metrics({"spend": -5}, "test")
        assert not r.is_valid
        assert not r.has_real_data
        assert len(r.errors) == 1

    def test_funnel_inversion_warns(self):
        r = validate_metrics({"booking_step_1": 5, "booking_step_2": 10}, "test")
        assert len(r.warnings) == 1
        assert "step 2" in r.warnings[0]

    def test_no_data(self):
        r = validate_metrics({}, "test")
        assert r.is_valid
        assert not r.has_real_data


def test_sanitize_metrics_keeps_other_keys():
    out = sanitize_metrics({"spend": "12.5 PLN", "name": "x"})
    assert out["spend"] == 12.5
    assert out["clicks"] == 0.0
    assert out["name"] == "x"


def test_has_real_conversion_data():
    assert has_real_conversion_data({"reservations": 0, "email_contacts": "1"})
    assert not has_real_conversion_data({})


def test_looks_estimated_flags_exact_share_of_clicks():
    hits = looks_estimated({"clicks": 100, "click_to_call": 30})
    assert len(hits) == 1
    assert "click_to_call" in hits[0]
    assert looks_estimated({"clicks": 0, "click_to_call": 30}) == []


@pytest.mark.parametrize("data,expected", [
    ({"spend": 10, "reservations": 0}, True),
    ({"spend": 0, "clicks": 0}, False),
    ({"clicks": 5, "reservations": 1}, False),
])
def test_log_missing_data_warning(data, expected):
    assert log_missing_data_warning("test", data) is expected


class TestConversionRateChecks:
    def test_more_conversions_than_clicks_fails_both(self):
        checks = conversion_rate_checks({"clicks": 10, "conversions": 12})
        assert not checks["conversion_rate_ok"]["passed"]
        assert checks["conversion_rate_ok"]["value"] == 120.0
        assert not checks["conversions_le_clicks"]["passed"]

    def test_zero_clicks_passes(self):
        checks = conversion_rate_checks({"clicks": 0, "conversions": 0})
        assert all(c["passed"] for c in checks.values())
