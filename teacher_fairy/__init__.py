"""
Teacher Fairy Backend Package
=============================

Flask-based backend for the Teacher Fairy lesson-plan authoring tool.

Structure:
- routes/: API route blueprints
- services/: Standards, rendering, generation, export and backup services
- data/: Static data files (seed standards)
- models.py: Plan form and project state records
- config.py: Configuration management
"""

from .config import config, Config

__version__ = "1.0.0"

__all__ = ['config', 'Config']
