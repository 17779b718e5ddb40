"""
Rate limiting configuration.

The Limiter instance is created in budget_tracker/__init__.py with no default
limits; this module applies per-blueprint limits.

Usage:
    from budget_tracker.middleware.rate_limiter import init_rate_limits
    init_rate_limits(app, limiter)
"""

import logging

logger = logging.getLogger(__name__)


def init_rate_limits(app, limiter):
    """
    Apply rate limits to API blueprints.

    Limits (per remote IP):
        - Auth endpoints:      10/minute (password guessing)
        - User data endpoints: 120/minute (one upsert per workspace change)

    Rate limiting is disabled in testing mode.
    """
    if app.config.get("TESTING"):
        app.logger.info("Rate limiter disabled (TESTING=True)")
        return

    bp = app.blueprints.get("auth_bp")
    if bp:
        limiter.limit("10/minute")(bp)

    bp = app.blueprints.get("user_data_bp")
    if bp:
        limiter.limit("120/minute")(bp)

    app.logger.info("Rate limiter configured — auth: 10/min, user-data: 120/min")
