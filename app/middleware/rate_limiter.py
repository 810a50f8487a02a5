"""
Rate limiting configuration.

Applies per-blueprint rate limits using Flask-Limiter.
The Limiter instance is created in app/__init__.py with no default limits;
this module applies granular limits per route category.

Usage:
    from app.middleware.rate_limiter import init_rate_limits
    init_rate_limits(app, limiter)
"""

import logging

logger = logging.getLogger(__name__)

WRITE_LIMIT = "60/minute"
READ_LIMIT = "200/minute"

_WRITE_METHODS = ["POST", "PUT", "DELETE"]

# Blueprints carrying mutations (template maintenance, projection, status gate)
_API_BLUEPRINTS = ("templates", "projects", "checklist")


def init_rate_limits(app, limiter):
    """
    Apply rate limits to API blueprints.

    Limits (per remote IP):
        - Write endpoints:  60/minute  (POST/PUT/DELETE)
        - Read endpoints:   200/minute (GET)
        - Health check:     exempt

    Rate limiting is disabled in testing mode.
    """
    if app.config.get("TESTING"):
        app.logger.info("Rate limiter disabled (TESTING=True)")
        return

    for bp_name in _API_BLUEPRINTS:
        bp = app.blueprints.get(bp_name)
        if bp:
            limiter.limit(WRITE_LIMIT, methods=_WRITE_METHODS)(bp)
            limiter.limit(READ_LIMIT, methods=["GET"])(bp)

    bp = app.blueprints.get("health_bp")
    if bp:
        limiter.exempt(bp)

    app.logger.info("Rate limiter configured — write: %s, read: %s", WRITE_LIMIT, READ_LIMIT)
