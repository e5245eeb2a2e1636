from datetime import date

import pytest

from astock_research.domain.services.periods import (
    default_report_date,
    lookback_start,
    parse_period,
    to_period,
)


@pytest.mark.parametrize(
    "today, expected",
    [
        (date(2024, 2, 10), date(2023, 12, 31)),
        (date(2024, 3, 31), date(2023, 12, 31)),
        (date(2024, 4, 1), date(2024, 3, 31)),
        (date(2024, 8, 15), date(2024, 6, 30)),
        (date(2024, 12, 31), date(2024, 9, 30)),
    ],
)
def test_default_report_date_is_last_completed_quarter_end(today, expected):
    result = default_report_date(today)
    assert result == expected
    assert result <= today
    assert to_period(result)[4:] in {"1231", "0331", "0630", "0930"}


def test_parse_period_accepts_compact_and_iso():
    assert parse_period("20240331") == date(2024, 3, 31)
    assert parse_period("2024-03-31") == date(2024, 3, 31)


def test_parse_period_rejects_garbage():
    with pytest.raises(ValueError):
        parse_period("31/03/2024")


def test_lookback_start_spans_ninety_days():
    assert to_period(lookback_start(date(2024, 3, 31), 90)) == "20240101"
