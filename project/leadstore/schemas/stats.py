# leadstore/schemas/stats.py

from pydantic import BaseModel
from typing import Dict, List

class DailyCount(BaseModel):
    date: str       # YYYY-MM-DD
    count: int

class DashboardStats(BaseModel):
    total_leads: int = 0
    total_called: int = 0
    total_visited: int = 0
    call_rate: float = 0.0          # % лидов, которым позвонили
    visit_rate: float = 0.0         # % лидов, пришедших на визит
    conversion_rate: float = 0.0    # % визитов среди обзвоненных
    today_leads: int = 0
    this_week_leads: int = 0
    this_month_leads: int = 0
    occupation_breakdown: Dict[str, int] = {}
    daily_registrations: List[DailyCount] = []
