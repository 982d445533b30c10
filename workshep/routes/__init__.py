"""
Workshep API Routes
===================

All API route blueprints for the Workshep application.

Usage:
    from workshep.routes import register_routes
    register_routes(app)
"""
from .workshop_routes import workshop_bp
from .submission_routes import submission_bp
from .assessment_routes import assessment_bp
from .grading_routes import grading_bp
from .calibration_routes import calibration_bp


def register_routes(app):
    """Register all route blueprints with the Flask app."""
    app.register_blueprint(workshop_bp)
    app.register_blueprint(submission_bp)
    app.register_blueprint(assessment_bp)
    app.register_blueprint(grading_bp)
    app.register_blueprint(calibration_bp)


__all__ = [
    'register_routes',
    'workshop_bp',
    'submission_bp',
    'assessment_bp',
    'grading_bp',
    'calibration_bp',
]
