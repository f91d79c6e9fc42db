import pytest

from services.meta_actions_parser import (
    aggregate_conversion_metrics,
    enhance_campaign,
    enhance_campaigns,
    parse_meta_actions,
)


def _a(action_type, value):
    return {"action_type": action_type, "value": value}


class TestParseMetaActions:
    def test_omni_wins_over_pixel_and_bare_names(self):
        m = parse_meta_actions([
            _a("omni_search", "10"),
            _a("offsite_conversion.fb_pixel_search", "12"),
            _a("search", "10"),
        ])
        assert m.booking_step_1 == 10

    def test_pixel_used_when_omni_missing(self):
        m = parse_meta_actions([_a("offsite_conversion.fb_pixel_view_content", "5")])
        assert m.booking_step_2 == 5

    def test_initiate_checkout_maps_to_step_3(self):
        m = parse_meta_actions([
            _a("omni_initiated_checkout", "4"),
            _a("offsite_conversion.fb_pixel_initiate_checkout", "6"),
        ])
        assert m.booking_step_3 == 4

    def test_reservations_and_value_from_purchase(self):
        m = parse_meta_actions(
            [_a("omni_purchase", "3"), _a("purchase", "3")],
            [_a("omni_purchase", "1500.50"), _a("offsite_conversion.fb_pixel_purchase", "1400")],
        )
        assert m.reservations == 3
        assert m.reservation_value == 1500.5
        assert m.conversion_value == 1500.5
        assert m.total_conversion_value == 1500.5

    def test_action_types_are_case_insensitive(self):
        m = parse_meta_actions([_a("OMNI_SEARCH", "7")])
        assert m.booking_step_1 == 7

    def test_custom_phone_event_replaces_standard(self):
        actions = [
            _a("offsite_conversion.custom.1470262077092668", "4"),
            _a("click_to_call_call_confirm", "9"),
        ]
        assert parse_meta_actions(actions).click_to_call == 4
        assert parse_meta_actions(actions[1:]).click_to_call == 9

    def test_extra_phone_events_per_call(self):
        m = parse_meta_actions(
            [_a("offsite_conversion.custom.999", "2"), _a("click_to_call_call_confirm", "9")],
            phone_events=["offsite_conversion.custom.999"],
        )
        assert m.click_to_call == 2

    def test_email_contacts_sum_standard_events(self):
        m = parse_meta_actions([_a("lead", "2"), _a("onsite_conversion.lead_grouped", "1")])
        assert m.email_contacts == 3

    def test_custom_email_event_replaces_standard(self):
        m = parse_meta_actions([_a("offsite_conversion.custom.2770488499782793", "5"), _a("lead", "2")])
        assert m.email_contacts == 5

    def test_negative_and_unparsable_values_skipped(self):
        m = parse_meta_actions([_a("omni_search", "-3"), _a("omni_view_content", "abc")])
        assert m.booking_step_1 == 0
        assert m.booking_step_2 == 0

    def test_non_finite_values_skipped(self):
        m = parse_meta_actions(
            [_a("omni_search", "inf"), _a("omni_purchase", "NaN"), _a("omni_view_content", "2")],
            [_a("omni_purchase", float("inf"))],
        )
        assert m.booking_step_1 == 0
        assert m.reservations == 0
        assert m.booking_step_2 == 2
        assert m.reservation_value == 0.0

    def test_non_list_actions_give_zero_metrics(self):
        m = parse_meta_actions("not-a-list")
        assert m.to_dict() == parse_meta_actions().to_dict()
        assert m.reservations == 0

    def test_non_list_action_values_treated_as_empty(self):
        m = parse_meta_actions([_a("omni_purchase", "2")], action_values={"bad": 1})
        assert m.reservations == 2
        assert m.reservation_value == 0.0

    def test_funnel_inversion_is_not_corrected(self):
        m = parse_meta_actions([_a("omni_search", "1"), _a("omni_view_content", "5")])
        assert m.booking_step_1 == 1
        assert m.booking_step_2 == 5


class TestEnhanceAndAggregate:
    def test_enhance_campaign_keeps_original_fields(self):
        c = {"campaign_id": "1", "campaign_name": "Summer", "spend": 10, "actions": [_a("omni_purchase", "1")]}
        out = enhance_campaign(c)
        assert out["campaign_name"] == "Summer"
        assert out["reservations"] == 1
        assert "reservations" not in c

    def test_enhance_campaigns_non_list(self):
        assert enhance_campaigns(None) == []

    def test_aggregate_sums_and_recomputes_roas(self):
        campaigns = [
            {"booking_step_1": 2, "reservations": 1, "reservation_value": "350.00 PLN",
             "conversion_value": 350, "total_conversion_value": 350, "spend": "100"},
            {"booking_step_1": "3", "reservations": 0, "reservation_value": 150,
             "conversion_value": 150, "total_conversion_value": 150, "spend": 100},
        ]
        totals = aggregate_conversion_metrics(campaigns)
        assert totals.booking_step_1 == 5
        assert totals.reservations == 1
        assert totals.reservation_value == 500.0
        assert totals.roas == pytest.approx(2.5)

    def test_aggregate_without_spend_has_zero_roas(self):
        totals = aggregate_conversion_metrics([{"total_conversion_value": 100}])
        assert totals.roas == 0.0
