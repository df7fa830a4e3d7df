"""
Rate limiting configuration.

Applies per-route-group limits using Flask-Limiter. The Limiter instance is
created in app/__init__.py with no default limits; this module decides which
scheduling routes get which limit.

Limits are keyed by tenant when a tenant_id is supplied, else by remote IP.

Usage:
    from app.middleware.rate_limiter import init_rate_limits
    init_rate_limits(app, limiter)
"""

import logging

from flask import request as flask_request

from app.utils.helpers import tenant_id_arg

logger = logging.getLogger(__name__)

# Recompute-heavy endpoints: each call runs CPM over a whole home (or several).
RECOMPUTE_LIMIT = "30/minute"
# Everything else on the scheduling blueprint.
SCHEDULE_LIMIT = "200/minute"

_RECOMPUTE_ENDPOINTS = (
    "home_schedule.recompute_forecast",
    "home_schedule.put_dependencies",
)


def tenant_rate_limit_key() -> str:
    """Dynamic rate limit key: tenant_id (query or JSON body) if available, else remote IP."""
    tenant_id = tenant_id_arg()
    if tenant_id:
        return f"tenant:{tenant_id}"
    return flask_request.remote_addr or "unknown"


def init_rate_limits(app, limiter):
    """
    Apply rate limits to the scheduling API.

    Limits:
        - Forecast recompute / template edges:  30/minute
        - Other scheduling endpoints:            200/minute
        - Health check:                          exempt

    Rate limiting is disabled when RATELIMIT_ENABLED is false (testing).
    """
    if not app.config.get("RATELIMIT_ENABLED", True):
        app.logger.info("Rate limiter disabled (RATELIMIT_ENABLED=False)")
        return

    for endpoint in _RECOMPUTE_ENDPOINTS:
        view = app.view_functions.get(endpoint)
        if view:
            app.view_functions[endpoint] = limiter.limit(
                RECOMPUTE_LIMIT, key_func=tenant_rate_limit_key
            )(view)

    bp = app.blueprints.get("home_schedule")
    if bp:
        limiter.limit(SCHEDULE_LIMIT, key_func=tenant_rate_limit_key)(bp)

    bp = app.blueprints.get("health_bp")
    if bp:
        limiter.exempt(bp)

    app.logger.info(
        "Rate limiter configured — recompute: %s, scheduling: %s",
        RECOMPUTE_LIMIT, SCHEDULE_LIMIT,
    )
