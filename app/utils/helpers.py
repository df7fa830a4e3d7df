"""Shared request-parsing helpers for the scheduling blueprints.

parse_date_input:  ISO or US date string → date (raises ValueError on bad input)
tenant_id_arg:     tenant scope from query string or JSON body
"""
import logging
from datetime import date, datetime

from flask import request

logger = logging.getLogger(__name__)


def parse_date_input(value):
    """Parse a date string, raising ValueError on bad input.

    Empty input returns None so callers can treat it as "clear the date".

    Supports: YYYY-MM-DD, YYYY-MM-DDTHH:MM:SS, MM/DD/YYYY, date objects.
    """
    if not value:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str):
        raise ValueError("Invalid date format. Use YYYY-MM-DD or MM/DD/YYYY.")
    try:
        return date.fromisoformat(value)
    except ValueError:
        pass
    try:
        return datetime.fromisoformat(value).date()
    except ValueError:
        pass
    try:
        return datetime.strptime(value, "%m/%d/%Y").date()
    except ValueError as exc:
        raise ValueError(
            "Invalid date format. Use YYYY-MM-DD or MM/DD/YYYY."
        ) from exc


def tenant_id_arg() -> int | None:
    """Extract tenant_id from query string or JSON body."""
    tid = request.args.get("tenant_id", type=int)
    if tid:
        return tid
    data: dict = request.get_json(silent=True) or {}
    tid = data.get("tenant_id")
    if isinstance(tid, int) and not isinstance(tid, bool):
        return tid
    return None
