"""
Workshep Backend Package
========================

Flask-based backend for the Workshep peer-assessment activity.

Structure:
- routes/: API route blueprints
- services/: Workshop, aggregation, flagging and report services
- strategies/: Grading strategies (assessment form definitions)
- evaluation/: Grading evaluation methods (grades for assessment)
- calibration/: Calibration methods (reviewer accuracy on examples)
- allocation/: Reviewer allocation methods
- config.py: Configuration management
"""

from .config import config, Config

__version__ = "1.0.0"

__all__ = ['config', 'Config']
