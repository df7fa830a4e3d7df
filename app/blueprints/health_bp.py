"""
Health check blueprint.

Endpoints:
    GET /api/v1/health/ready    — simple 200 for load balancers
    GET /api/v1/health/live     — database round-trip plus app info
    GET /api/v1/health/db-diag  — row counts of the scheduling tables
"""

import logging
import time

from flask import Blueprint, current_app, jsonify
from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError

from app.models import db
from app.models.construction import (
    CategoryGate,
    Home,
    HomeTask,
    PunchItem,
    TemplateDependency,
    WorkTemplateItem,
)

logger = logging.getLogger(__name__)

health_bp = Blueprint("health_bp", __name__, url_prefix="/api/v1/health")

_DIAG_MODELS = (WorkTemplateItem, TemplateDependency, CategoryGate, Home, HomeTask, PunchItem)


@health_bp.route("/ready", methods=["GET"])
def ready():
    """Simple readiness probe — always 200 if app is running."""
    return jsonify({"status": "ok"}), 200


@health_bp.route("/live", methods=["GET"])
def live():
    """Detailed liveness check with dependency status."""
    checks = {}
    overall = True

    # ── Database ─────────────────────────────────────────────────────
    try:
        t0 = time.perf_counter()
        db.session.execute(db.text("SELECT 1"))
        db_ms = (time.perf_counter() - t0) * 1000
        checks["database"] = {"status": "ok", "latency_ms": round(db_ms, 1)}
    except SQLAlchemyError as exc:
        db.session.rollback()
        checks["database"] = {"status": "error", "detail": str(exc)}
        overall = False
        logger.error("Health check — database failed: %s", exc)

    # ── App info ─────────────────────────────────────────────────────
    checks["app"] = {
        "name": "Homebuilding Production Scheduler",
        "debug": current_app.debug,
        "testing": current_app.testing,
        "forecast_recompute_on_change": current_app.config.get("FORECAST_RECOMPUTE_ON_CHANGE"),
    }

    status_code = 200 if overall else 503
    return jsonify({
        "status": "healthy" if overall else "degraded",
        "checks": checks,
    }), status_code


@health_bp.route("/db-diag", methods=["GET"])
def db_diagnostic():
    """
    Quick DB diagnostic — check the scheduling tables exist and are queryable.
    Useful after a deployment that changed the schema.
    """
    results = {}
    for model in _DIAG_MODELS:
        try:
            count = db.session.execute(select(func.count()).select_from(model)).scalar()
            results[model.__tablename__] = {"status": "ok", "count": count}
        except SQLAlchemyError as exc:
            db.session.rollback()
            results[model.__tablename__] = {"status": "error", "detail": str(exc)}
    return jsonify(results), 200
