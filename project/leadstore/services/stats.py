# leadstore/services/stats.py

import datetime
from collections import Counter

from leadstore.schemas.lead import LeadRead
from leadstore.schemas.stats import DashboardStats, DailyCount

DAILY_WINDOW_DAYS = 14


def parse_timestamp(value: str | None) -> datetime.datetime | None:
    """ISO-8601 в aware datetime. Время без зоны считается UTC, нераспознанное даёт None."""
    if not value:
        return None
    try:
        parsed = datetime.datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=datetime.timezone.utc)
    return parsed


def percent(part: int, whole: int) -> float:
    return part / whole * 100 if whole > 0 else 0.0


def calculate_stats(leads: list[LeadRead], now: datetime.datetime | None = None) -> DashboardStats:
    """
    Сводка для дашборда.
    Окна «неделя» и «месяц» отсчитываются от начала текущего дня: 7 и 30 дней назад.
    """
    now = now or datetime.datetime.now(datetime.timezone.utc)
    if now.tzinfo is None:
        now = now.replace(tzinfo=datetime.timezone.utc)

    today = now.replace(hour=0, minute=0, second=0, microsecond=0)
    week_ago = today - datetime.timedelta(days=7)
    month_ago = today - datetime.timedelta(days=30)

    created = [parse_timestamp(lead.created_at) for lead in leads]
    created = [c.astimezone(now.tzinfo) for c in created if c is not None]

    total = len(leads)
    called = sum(1 for lead in leads if lead.call_datetime)
    visited = sum(1 for lead in leads if lead.visit_datetime)

    per_day = Counter(c.date() for c in created)
    daily = []
    for offset in range(DAILY_WINDOW_DAYS - 1, -1, -1):
        day = (today - datetime.timedelta(days=offset)).date()
        daily.append(DailyCount(date=day.isoformat(), count=per_day.get(day, 0)))

    return DashboardStats(
        total_leads=total,
        total_called=called,
        total_visited=visited,
        call_rate=percent(called, total),
        visit_rate=percent(visited, total),
        conversion_rate=percent(visited, called),
        today_leads=sum(1 for c in created if c >= today),
        this_week_leads=sum(1 for c in created if c >= week_ago),
        this_month_leads=sum(1 for c in created if c >= month_ago),
        occupation_breakdown=dict(Counter(lead.occupation for lead in leads)),
        daily_registrations=daily,
    )
