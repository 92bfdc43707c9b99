"""
Teacher Fairy API Routes
========================

All API route blueprints for the Teacher Fairy application.

Usage:
    from teacher_fairy.routes import register_routes
    register_routes(app)
"""
from .planner_routes import planner_bp
from .generation_routes import generation_bp
from .export_routes import export_bp
from .backup_routes import backup_bp


def register_routes(app):
    """Register all route blueprints with the Flask app."""
    app.register_blueprint(planner_bp)
    app.register_blueprint(generation_bp)
    app.register_blueprint(export_bp)
    app.register_blueprint(backup_bp)


__all__ = [
    'register_routes',
    'planner_bp',
    'generation_bp',
    'export_bp',
    'backup_bp',
]
