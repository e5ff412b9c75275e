"""
Blueprint registration for the grade tracker.

All blueprints are registered without URL prefixes; API routes carry their
own ``/api`` prefix.
"""

from __future__ import annotations


def register_blueprints(app):
    from blueprints.core import bp as core_bp
    from blueprints.grades import bp as grades_bp
    from blueprints.dashboard import bp as dashboard_bp

    app.register_blueprint(core_bp)
    app.register_blueprint(grades_bp)
    app.register_blueprint(dashboard_bp)
