from datetime import date
from uuid import uuid4

import pytest

from subscription_service.errors import InvalidIdentifier
from subscription_service.services.cost_engine import (
    SubscriptionFilter,
    calculate_total_cost,
    count_active_months,
    is_active_in,
    parse_identifier,
)
from subscription_service.services.periods import parse_period_range


def _row(price, start, end=None, *, user_id=None, service_name="Yandex Plus"):
    return {
        "id": uuid4(),
        "service_name": service_name,
        "price": price,
        "user_id": user_id or uuid4(),
        "start_date": start,
        "end_date": end,
    }


def test_full_overlap_counts_every_month() -> None:
    row = _row(400, date(2023, 1, 1), date(2023, 3, 1))
    assert calculate_total_cost([row], parse_period_range("2023-01", "2023-03")) == 1200


def test_single_month_inside_subscription() -> None:
    row = _row(400, date(2023, 1, 1), date(2023, 3, 1))
    assert calculate_total_cost([row], parse_period_range("2023-02", "2023-02")) == 400


def test_open_ended_subscription_starting_after_range_costs_nothing() -> None:
    row = _row(400, date(2023, 5, 1), None)
    assert calculate_total_cost([row], parse_period_range("2023-01", "2023-03")) == 0


def test_open_ended_subscription_runs_to_range_end() -> None:
    row = _row(250, date(2023, 2, 1), None)
    assert calculate_total_cost([row], parse_period_range("2023-01", "2023-06")) == 250 * 5


def test_partial_overlap_on_both_edges() -> None:
    period = parse_period_range("2023-03", "2023-08")
    early = _row(100, date(2023, 1, 1), date(2023, 4, 1))
    late = _row(10, date(2023, 7, 1), date(2023, 12, 1))

    assert count_active_months(early, period) == 2
    assert count_active_months(late, period) == 2
    assert calculate_total_cost([early, late], period) == 220


def test_boundaries_are_inclusive() -> None:
    row = _row(100, date(2023, 3, 1), date(2023, 3, 1))
    assert is_active_in(row, date(2023, 3, 1))
    assert not is_active_in(row, date(2023, 2, 1))
    assert not is_active_in(row, date(2023, 4, 1))


def test_range_across_year_boundary() -> None:
    row = _row(300, date(2023, 11, 1), date(2024, 1, 1))
    assert calculate_total_cost([row], parse_period_range("2023-12", "2024-03")) == 600


def test_empty_rows_total_zero() -> None:
    assert calculate_total_cost([], parse_period_range("2023-01", "2023-12")) == 0


def test_total_is_independent_of_row_order() -> None:
    period = parse_period_range("2023-01", "2023-12")
    rows = [
        _row(400, date(2023, 1, 1), date(2023, 3, 1)),
        _row(199, date(2022, 6, 1), None),
        _row(1000, date(2023, 10, 1), date(2024, 2, 1)),
    ]

    forward = calculate_total_cost(rows, period)
    backward = calculate_total_cost(list(reversed(rows)), period)

    assert forward == backward == 1200 + 199 * 12 + 3000


def test_total_is_additive_across_disjoint_filters() -> None:
    period = parse_period_range("2023-01", "2023-06")
    alice = uuid4()
    bob = uuid4()
    rows = [
        _row(400, date(2023, 1, 1), date(2023, 3, 1), user_id=alice),
        _row(150, date(2022, 1, 1), None, user_id=alice),
        _row(700, date(2023, 4, 1), None, user_id=bob),
    ]

    only_alice = calculate_total_cost(rows, period, SubscriptionFilter(user_id=alice))
    only_bob = calculate_total_cost(rows, period, SubscriptionFilter(user_id=bob))
    everyone = calculate_total_cost(rows, period, SubscriptionFilter())

    assert only_alice == 1200 + 900
    assert only_bob == 2100
    assert everyone == only_alice + only_bob


def test_service_name_filter_is_case_insensitive_substring() -> None:
    period = parse_period_range("2023-01", "2023-01")
    rows = [
        _row(400, date(2023, 1, 1), service_name="Yandex Plus"),
        _row(300, date(2023, 1, 1), service_name="Netflix"),
    ]

    assert calculate_total_cost(rows, period, SubscriptionFilter(service_name="yandex")) == 400
    assert calculate_total_cost(rows, period, SubscriptionFilter(service_name="FLI")) == 300
    assert calculate_total_cost(rows, period, SubscriptionFilter(service_name="spotify")) == 0


def test_filter_from_query_treats_blank_as_absent() -> None:
    assert SubscriptionFilter.from_query(None, None) == SubscriptionFilter()
    assert SubscriptionFilter.from_query("  ", "   ") == SubscriptionFilter()
    assert SubscriptionFilter.from_query(None, "  Plus ").service_name == "Plus"


def test_filter_from_query_parses_user_id() -> None:
    user_id = uuid4()
    assert SubscriptionFilter.from_query(str(user_id), None).user_id == user_id


def test_filter_from_query_rejects_malformed_user_id() -> None:
    with pytest.raises(InvalidIdentifier):
        SubscriptionFilter.from_query("not-a-uuid", None)


def test_parse_identifier_passes_uuid_through() -> None:
    value = uuid4()
    assert parse_identifier(value) is value
    with pytest.raises(InvalidIdentifier):
        parse_identifier("1234")
