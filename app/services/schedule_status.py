"""
Schedule status of a home: forecast completion vs. target completion.

Rules:
    - either date missing               → on_track
    - forecast <= target                → on_track
    - forecast within target + N days   → at_risk   (N calendar days, default 7)
    - otherwise                         → behind
"""

from datetime import date, timedelta

ON_TRACK = "on_track"
AT_RISK = "at_risk"
BEHIND = "behind"

SCHEDULE_STATUSES = (ON_TRACK, AT_RISK, BEHIND)


def get_schedule_status(
    forecast_completion: date | None,
    target_completion: date | None,
    at_risk_days: int = 7,
) -> str:
    if not forecast_completion or not target_completion:
        return ON_TRACK
    if forecast_completion <= target_completion:
        return ON_TRACK
    if forecast_completion <= target_completion + timedelta(days=at_risk_days):
        return AT_RISK
    return BEHIND
