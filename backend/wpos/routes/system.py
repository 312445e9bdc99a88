# backend/wpos/routes/system.py
"""
Liveness and version endpoints.

/health pings the database so load balancers take a node out when storage
is unreachable.
"""

import sys
import time

from flask import Blueprint, current_app
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db
from ..time_utils import to_utc_z, utcnow

system_bp = Blueprint("system", __name__)


def check_database_health() -> dict:
    start_time = time.time()
    try:
        db.session.execute(text("SELECT 1"))
        elapsed_ms = (time.time() - start_time) * 1000
        return {"status": "healthy", "latency_ms": round(elapsed_ms, 2)}
    except SQLAlchemyError:
        db.session.rollback()
        elapsed_ms = (time.time() - start_time) * 1000
        current_app.logger.exception("Database health check failed")
        return {"status": "unhealthy", "latency_ms": round(elapsed_ms, 2), "error": "Database error"}


@system_bp.get("/health")
def health():
    """
    200 when the database answers, 503 otherwise.
    """
    database_health = check_database_health()
    healthy = database_health["status"] == "healthy"
    return {
        "status": "healthy" if healthy else "unhealthy",
        "timestamp": to_utc_z(utcnow()),
        "checks": {"database": database_health},
    }, 200 if healthy else 503


@system_bp.get("/version")
def version():
    """Non-sensitive deployment information."""
    env = "production" if not current_app.debug else "development"
    return {
        "api_version": "1.0.0",
        "environment": env,
        "python_version": sys.version.split()[0],
        "server_time": to_utc_z(utcnow()),
    }
