from datetime import date, datetime

import pytest

from ctrm.services import working_days
from ctrm.services.working_days import DistributionRangeError

# =============================================================================
# Business-day calendar
# =============================================================================


def test_is_business_day_weekdays_only():
    assert working_days.is_business_day(date(2024, 3, 1))  # Friday
    assert not working_days.is_business_day(date(2024, 3, 2))  # Saturday
    assert not working_days.is_business_day(date(2024, 3, 3))  # Sunday
    assert working_days.is_business_day(date(2024, 3, 4))  # Monday


def test_count_business_days_single_friday():
    assert working_days.count_business_days(date(2024, 3, 1), date(2024, 3, 1)) == 1


def test_count_business_days_weekend_only():
    assert working_days.count_business_days(date(2024, 3, 2), date(2024, 3, 3)) == 0


def test_count_business_days_ignores_time_of_day():
    start = datetime(2024, 3, 1, 23, 59)
    end = datetime(2024, 3, 4, 0, 1)
    assert working_days.count_business_days(start, end) == 2


def test_count_business_days_accepts_iso_strings():
    assert working_days.count_business_days("2024-03-01", "2024-03-31T12:00:00Z") == 21


def test_count_business_days_inverted_range_is_zero(caplog):
    with caplog.at_level("WARNING", logger="ctrm.working_days"):
        assert working_days.count_business_days(date(2024, 3, 10), date(2024, 3, 1)) == 0
    assert "count_business_days_inverted_range" in caplog.text


def test_count_business_days_invalid_date_is_zero(caplog):
    with caplog.at_level("WARNING", logger="ctrm.working_days"):
        assert working_days.count_business_days("not-a-date", date(2024, 3, 1)) == 0
    assert "count_business_days_invalid_date" in caplog.text


def test_business_days_in_month():
    assert working_days.business_days_in_month("Feb-24") == 21
    assert working_days.business_days_in_month("Mar-24") == 21


# =============================================================================
# Distribution by business days
# =============================================================================


def test_distribute_across_month_boundary():
    # Feb 26-29 (Mon-Thu) and Mar 1, Mar 4 -> 4 and 2 business days
    result = working_days.distribute_by_business_days(date(2024, 2, 26), date(2024, 3, 4), 700)
    assert result == {"Feb-24": 466.67, "Mar-24": 233.33}
    assert round(sum(result.values()), 2) == 700


def test_distribute_single_month_gets_everything():
    result = working_days.distribute_by_business_days(date(2024, 3, 1), date(2024, 3, 31), 1000)
    assert result == {"Mar-24": 1000}


def test_distribute_three_months_in_order():
    result = working_days.distribute_by_business_days(date(2024, 1, 31), date(2024, 3, 1), 100)
    assert list(result) == ["Jan-24", "Feb-24", "Mar-24"]
    assert round(sum(result.values()), 2) == 100


def test_distribute_weighted_by_days_inside_range():
    # Jan 31 (Wed), Feb 1 (Thu): one business day each
    result = working_days.distribute_by_business_days(date(2024, 1, 31), date(2024, 2, 1), 1)
    assert result == {"Jan-24": 0.5, "Feb-24": 0.5}

    result = working_days.distribute_by_business_days(
        date(2024, 1, 31), date(2024, 2, 2), 100
    )  # 1 day Jan, 2 days Feb
    assert result == {"Jan-24": 33.33, "Feb-24": 66.67}


def test_distribute_negative_total_sums_exactly():
    result = working_days.distribute_by_business_days(date(2024, 2, 26), date(2024, 3, 4), -700)
    assert result == {"Feb-24": -466.67, "Mar-24": -233.33}


def test_distribute_skips_months_without_business_days():
    # Sat Jun 1 - Sun Jun 2 contribute nothing; May 31 is a Friday
    result = working_days.distribute_by_business_days(date(2024, 5, 31), date(2024, 6, 2), 50)
    assert result == {"May-24": 50}


def test_distribute_weekend_only_range_is_empty(caplog):
    with caplog.at_level("WARNING", logger="ctrm.working_days"):
        assert working_days.distribute_by_business_days(date(2024, 3, 2), date(2024, 3, 3), 10) == {}
    assert "distribution_no_business_days" in caplog.text


def test_distribute_invalid_range_is_empty():
    assert working_days.distribute_by_business_days(date(2024, 3, 5), date(2024, 3, 1), 10) == {}
    assert working_days.distribute_by_business_days("garbage", date(2024, 3, 1), 10) == {}


def test_distribute_zero_total_is_empty():
    assert working_days.distribute_by_business_days(date(2024, 3, 1), date(2024, 3, 31), 0) == {}


@pytest.mark.parametrize(
    "start,end,total",
    [
        (date(2024, 1, 1), date(2024, 12, 31), 12345.67),
        (date(2024, 1, 15), date(2024, 4, 10), 999.99),
        (date(2023, 11, 20), date(2024, 2, 5), -3000),
        (date(2024, 2, 29), date(2024, 3, 1), 0.03),
    ],
)
def test_distribution_sums_to_total(start, end, total):
    result = working_days.distribute_by_business_days(start, end, total)
    assert abs(sum(result.values()) - total) <= 0.01


def test_distribute_allows_thirty_six_months():
    result = working_days.distribute_by_business_days(date(2024, 1, 1), date(2026, 12, 31), 3600)
    assert len(result) == 36


def test_distribute_beyond_cap_raises():
    with pytest.raises(DistributionRangeError):
        working_days.distribute_by_business_days(date(2024, 1, 1), date(2027, 1, 4), 3700)
