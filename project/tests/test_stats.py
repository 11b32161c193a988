"""Tests for dashboard statistics."""
import datetime

import pytest

from leadstore.schemas.lead import LeadTracking
from leadstore.services.stats import calculate_stats, parse_timestamp

UTC = datetime.timezone.utc


def iso(moment: datetime.datetime) -> str:
    return moment.isoformat(timespec="milliseconds").replace("+00:00", "Z")


@pytest.mark.unit
class TestWindows:
    """Registration counts over rolling windows."""

    async def test_week_and_month_windows(self, leads, make_lead):
        """Leads from today and 3 days ago count, 40 days ago does not."""
        now = datetime.datetime.now(UTC)
        await leads.insert_lead(make_lead(1), created_at=iso(now))
        await leads.insert_lead(make_lead(2), created_at=iso(now - datetime.timedelta(days=3)))
        await leads.insert_lead(make_lead(3), created_at=iso(now - datetime.timedelta(days=40)))

        stats = calculate_stats((await leads.get_all_leads()).items, now=now)
        assert stats.total_leads == 3
        assert stats.today_leads == 1
        assert stats.this_week_leads == 2
        assert stats.this_month_leads == 2

    async def test_daily_registrations(self, leads, make_lead):
        """Fourteen days, oldest first, today last."""
        now = datetime.datetime(2025, 3, 15, 12, 0, tzinfo=UTC)
        await leads.insert_lead(make_lead(1), created_at="2025-03-15T08:00:00.000Z")
        await leads.insert_lead(make_lead(2), created_at="2025-03-15T09:00:00.000Z")
        await leads.insert_lead(make_lead(3), created_at="2025-03-02T09:00:00.000Z")
        await leads.insert_lead(make_lead(4), created_at="2025-03-01T23:00:00.000Z")

        daily = calculate_stats((await leads.get_all_leads()).items, now=now).daily_registrations
        assert len(daily) == 14
        assert (daily[0].date, daily[0].count) == ("2025-03-02", 1)
        assert (daily[-1].date, daily[-1].count) == ("2025-03-15", 2)
        assert sum(d.count for d in daily) == 3


@pytest.mark.unit
class TestRates:
    """Call, visit and conversion rates."""

    async def test_rates_and_breakdown(self, leads, make_lead):
        """Rates are percentages of leads and of called leads."""
        ids = []
        for index, occupation in enumerate(["Student", "Student", "Teacher", "Other"], start=1):
            ids.append((await leads.insert_lead(make_lead(index, occupation=occupation))).id)
        await leads.update_lead_tracking(ids[0], LeadTracking(call_datetime="2025-03-01T10:00",
                                                              visit_datetime="2025-03-02T10:00"))
        await leads.update_lead_tracking(ids[1], LeadTracking(call_datetime="2025-03-01T11:00"))

        stats = calculate_stats((await leads.get_all_leads()).items)
        assert (stats.total_called, stats.total_visited) == (2, 1)
        assert stats.call_rate == pytest.approx(50.0)
        assert stats.visit_rate == pytest.approx(25.0)
        assert stats.conversion_rate == pytest.approx(50.0)
        assert stats.occupation_breakdown == {"Student": 2, "Teacher": 1, "Other": 1}

    def test_empty(self):
        """No leads means zero rates rather than division errors."""
        stats = calculate_stats([])
        assert stats.total_leads == 0
        assert stats.conversion_rate == 0.0
        assert len(stats.daily_registrations) == 14


@pytest.mark.unit
class TestParseTimestamp:
    """Timestamp parsing."""

    def test_zulu_suffix(self):
        assert parse_timestamp("2025-01-31T09:15:02.123Z") == datetime.datetime(
            2025, 1, 31, 9, 15, 2, 123000, tzinfo=UTC
        )

    def test_naive_is_utc(self):
        assert parse_timestamp("2025-01-31T09:15:02").tzinfo == UTC

    def test_garbage(self):
        assert parse_timestamp("yesterday") is None
        assert parse_timestamp(None) is None
