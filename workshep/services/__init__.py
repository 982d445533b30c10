"""
Workshep Services
=================

Business logic operating on a loaded workshop state.

Services:
- workshop_service: settings, phases, participants, submissions, assessments
- examples_service: example submissions and their reference assessments
- aggregation_service: grades for submission and for assessment, gradebook
- flagging_service: submitter contests of unfair assessments
- report_service: grading report with discrepancy detection
"""

# Services are imported directly when needed to avoid circular imports
# Example: from workshep.services.aggregation_service import run_aggregation

__all__ = [
    'workshop_service',
    'examples_service',
    'aggregation_service',
    'flagging_service',
    'report_service',
]
