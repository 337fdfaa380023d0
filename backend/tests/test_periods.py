from datetime import date

import pytest

from subscription_service.errors import InvalidFormat, InvalidRange
from subscription_service.services.periods import (
    PeriodRange,
    months_between,
    parse_period,
    parse_period_range,
    period_label,
    shift_months,
    validate_period_order,
)


def test_parse_period_valid() -> None:
    assert parse_period("2023-01") == date(2023, 1, 1)
    assert parse_period("1999-12") == date(1999, 12, 1)


@pytest.mark.parametrize("text", ["2023-01", "2024-02", "0001-01", "9999-12"])
def test_canonical_text_round_trips(text: str) -> None:
    assert period_label(parse_period(text)) == text


@pytest.mark.parametrize(
    "text",
    [
        "2023/01",
        "2023-1",
        "23-01",
        "01-2023",
        "2023-01-01",
        "2023-13",
        "2023-00",
        "0000-05",
        "20a3-01",
        "2023-0x",
        "2023-²1",
        "",
    ],
)
def test_parse_period_rejects_malformed(text: str) -> None:
    with pytest.raises(InvalidFormat):
        parse_period(text)


def test_invalid_format_is_a_value_error() -> None:
    with pytest.raises(ValueError):
        parse_period("July 2023")


def test_validate_period_order() -> None:
    validate_period_order("2023-01", "2023-01")
    validate_period_order("2022-12", "2023-01")
    with pytest.raises(InvalidRange):
        validate_period_order("2023-02", "2023-01")


def test_shift_months_year_boundary() -> None:
    assert shift_months(date(2026, 1, 1), -1) == date(2025, 12, 1)
    assert shift_months(date(2026, 12, 1), 1) == date(2027, 1, 1)
    assert shift_months(date(2026, 3, 1), 0) == date(2026, 3, 1)


def test_months_between_is_inclusive() -> None:
    assert months_between(date(2023, 1, 1), date(2023, 3, 1)) == 3
    assert months_between(date(2023, 11, 1), date(2024, 2, 1)) == 4
    assert months_between(date(2023, 3, 1), date(2023, 1, 1)) == 0


def test_period_range_iterates_lazily_and_restarts() -> None:
    period = parse_period_range("2023-11", "2024-02")

    expected = [date(2023, 11, 1), date(2023, 12, 1), date(2024, 1, 1), date(2024, 2, 1)]
    assert list(period) == expected
    assert list(period) == expected
    assert len(period) == 4

    iterator = iter(period)
    assert next(iterator) == date(2023, 11, 1)
    assert next(iter(period)) == date(2023, 11, 1)


def test_period_range_single_month() -> None:
    period = parse_period_range("2023-02", "2023-02")
    assert list(period) == [date(2023, 2, 1)]
    assert date(2023, 2, 15) in period
    assert date(2023, 3, 1) not in period


def test_period_range_reaches_last_representable_month() -> None:
    period = parse_period_range("9999-11", "9999-12")

    assert list(period) == [date(9999, 11, 1), date(9999, 12, 1)]
    assert list(period) == [date(9999, 11, 1), date(9999, 12, 1)]
    assert len(period) == 2
    assert list(parse_period_range("9999-12", "9999-12")) == [date(9999, 12, 1)]


def test_parse_period_range_reports_format_before_order() -> None:
    with pytest.raises(InvalidFormat):
        parse_period_range("2023-05", "2023/01")
    with pytest.raises(InvalidRange):
        parse_period_range("2023-05", "2023-01")


def test_period_range_rejects_inverted_bounds() -> None:
    with pytest.raises(InvalidRange):
        PeriodRange(start=date(2023, 3, 1), end=date(2023, 1, 1))
    with pytest.raises(InvalidFormat):
        PeriodRange(start=date(2023, 1, 15), end=date(2023, 3, 1))
