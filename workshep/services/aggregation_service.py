"""
Grade Aggregation
=================
Computes the grades for submission (weighted mean of the peer grades) and
the grades for assessment (mean of each reviewer's grading grades), and
pushes the final grades into the gradebook.

Aggregation only writes values that actually changed, so running it twice
leaves the state untouched. Assessments contested by the submitter and not
yet resolved by a teacher never count towards a submission grade.
"""
import time
import logging

from ..audit import audit_log
from ..errors import PhaseError, ValidationError
from ..grades import grade_floatval, grade_floats_different, real_grade, real_grading_grade
from .. import phases
from . import workshop_service as ws

logger = logging.getLogger(__name__)


def _restrict_set(restrict):
    """None means everybody; an empty restriction is a programming error."""
    if restrict is None:
        return None
    if not isinstance(restrict, (list, tuple, set)):
        restrict = [restrict]
    if not restrict:
        raise ValidationError('Empty value is not a valid restriction here')
    return {str(r) for r in restrict}


def counts_towards_submission_grade(assessment: dict) -> bool:
    if assessment.get("grade") is None:
        # not assessed yet
        return False
    if assessment.get("weight", 0) == 0:
        return False
    if assessment.get("submitterflagged") == ws.FLAG_PENDING:
        # contested, waiting for a teacher decision
        return False
    return True


# ══════════════════════════════════════════════════════════════
# GRADES FOR SUBMISSION
# ══════════════════════════════════════════════════════════════

def clear_submission_grades(state: dict, restrict=None):
    authors = _restrict_set(restrict)
    for s in ws.get_submissions(state):
        if authors is None or s["authorid"] in authors:
            s["grade"] = None


def _aggregate_submission_grade(submission: dict, assessments: list, now: int):
    sumgrades = 0
    sumweights = 0
    for a in assessments:
        if not counts_towards_submission_grade(a):
            continue
        sumgrades += a["grade"] * a["weight"]
        sumweights += a["weight"]

    finalgrade = None
    if sumweights > 0:
        finalgrade = grade_floatval(sumgrades / sumweights)

    if grade_floats_different(finalgrade, submission.get("grade")):
        submission["grade"] = finalgrade
        submission["timegraded"] = now
        return True
    return False


def aggregate_submission_grades(state: dict, restrict=None, now=None) -> int:
    """Weighted mean of the peer grades for every (or the given authors') submission.

    Returns the number of submissions whose grade changed.
    """
    now = int(time.time()) if now is None else int(now)
    authors = _restrict_set(restrict)

    by_submission = {}
    for a in state["assessments"]:
        by_submission.setdefault(a["submissionid"], []).append(a)

    changed = 0
    for s in ws.get_submissions(state):
        if authors is not None and s["authorid"] not in authors:
            continue
        if _aggregate_submission_grade(s, by_submission.get(s["id"], []), now):
            changed += 1
    return changed


# ══════════════════════════════════════════════════════════════
# GRADES FOR ASSESSMENT
# ══════════════════════════════════════════════════════════════

def clear_grading_grades(state: dict, restrict=None):
    reviewers = _restrict_set(restrict)
    for userid, aggregation in state["aggregations"].items():
        if reviewers is None or userid in reviewers:
            aggregation["gradinggrade"] = None


def _aggregate_grading_grade(state, reviewerid, assessments, now, user):
    sumgrades = 0
    count = 0
    for a in assessments:
        if a.get("gradinggradeover") is not None:
            # overridden by a teacher
            sumgrades += a["gradinggradeover"]
            count += 1
        elif a.get("gradinggrade") is not None:
            sumgrades += a["gradinggrade"]
            count += 1

    finalgrade = grade_floatval(sumgrades / count) if count > 0 else None

    aggregation = state["aggregations"].get(reviewerid)
    current = aggregation["gradinggrade"] if aggregation else None
    if not grade_floats_different(finalgrade, current):
        return False

    workshop_id = state["workshop"]["id"]
    if aggregation is None:
        state["aggregations"][reviewerid] = {
            "userid": reviewerid,
            "gradinggrade": finalgrade,
            "timegraded": now,
        }
        audit_log("ASSESSMENT_EVALUATED",
                  f"workshop={workshop_id} reviewer={reviewerid} finalgrade={finalgrade}", user)
    else:
        aggregation["gradinggrade"] = finalgrade
        aggregation["timegraded"] = now
        audit_log("ASSESSMENT_REEVALUATED",
                  f"workshop={workshop_id} reviewer={reviewerid} currentgrade={current} finalgrade={finalgrade}",
                  user)
    return True


def aggregate_grading_grades(state: dict, restrict=None, now=None, user: str = "system") -> int:
    """Simple mean of each reviewer's grading grades. Assessment weights are ignored.

    Returns the number of reviewers whose grade for assessment changed.
    """
    now = int(time.time()) if now is None else int(now)
    reviewers = _restrict_set(restrict)

    by_reviewer = {}
    for a in ws.get_all_assessments(state):
        if reviewers is not None and a["reviewerid"] not in reviewers:
            continue
        by_reviewer.setdefault(a["reviewerid"], []).append(a)

    changed = 0
    for reviewerid in sorted(by_reviewer):
        if _aggregate_grading_grade(state, reviewerid, by_reviewer[reviewerid], now, user):
            changed += 1
    return changed


# ══════════════════════════════════════════════════════════════
# FULL AGGREGATION RUN
# ══════════════════════════════════════════════════════════════

def run_aggregation(state: dict, settings: dict = None, user: str = "system", now=None) -> dict:
    """Recalculate all grades in the evaluation phase.

    The evaluator's grading grades come first, as an adjusting evaluator
    needs them for the submission grades. Each submission grade is then
    written once, either the weighted mean of the peer grades or the
    adjusted value, so a repeated run changes nothing.
    """
    from ..evaluation import get_evaluator

    if not phases.aggregation_allowed(state["workshop"]):
        raise PhaseError("Grades can only be aggregated in the evaluation phase")

    evaluator = get_evaluator(state)
    if settings is None or not settings:
        settings = evaluator.get_settings()
    settings = evaluator.save_settings(settings)

    evaluator.update_grading_grades(settings)
    adjusted = evaluator.adjusts_submission_grades(settings)
    if adjusted:
        submissions_changed = evaluator.update_submission_grades(settings, now=now)
    else:
        submissions_changed = aggregate_submission_grades(state, now=now)
    reviewers_changed = aggregate_grading_grades(state, now=now, user=user)

    summary = {
        "evaluation": evaluator.name,
        "settings": settings,
        "submissions_changed": submissions_changed,
        "reviewers_changed": reviewers_changed,
        "submissions_adjusted": adjusted,
        "pending_flags": sum(
            1 for a in ws.get_all_assessments(state) if a.get("submitterflagged") == ws.FLAG_PENDING),
    }
    logger.info("Aggregated grades in workshop %s: %s", state["workshop"]["id"], summary)
    audit_log("GRADES_AGGREGATED",
              f"workshop={state['workshop']['id']} evaluation={evaluator.name} "
              f"submissions={submissions_changed} reviewers={reviewers_changed}", user)
    return summary


def clear_aggregated_grades(state: dict, user: str = "system"):
    clear_submission_grades(state)
    clear_grading_grades(state)
    audit_log("AGGREGATED_GRADES_CLEARED", f"workshop={state['workshop']['id']}", user)


# ══════════════════════════════════════════════════════════════
# GRADEBOOK
# ══════════════════════════════════════════════════════════════

def update_gradebook(state: dict, user: str = "system") -> dict:
    """Store the real final grades of every participant."""
    workshop = state["workshop"]
    gradebook = {}
    for p in ws.get_participants(state):
        submission = ws.get_submission_by_author(state, p["id"])
        aggregation = state["aggregations"].get(p["id"])
        submissiongrade = real_grade(workshop, ws.final_submission_grade(submission)) if submission else None
        assessmentgrade = real_grading_grade(workshop, aggregation["gradinggrade"]) if aggregation else None
        gradebook[p["id"]] = {
            "submissiongrade": submissiongrade,
            "assessmentgrade": assessmentgrade,
        }
    state["gradebook"] = gradebook
    audit_log("GRADEBOOK_UPDATED", f"workshop={workshop['id']} users={len(gradebook)}", user)
    return gradebook


def get_gradebook_grades(state: dict, userid):
    """The user's grades from the gradebook, or None when there is nothing to show."""
    if not userid:
        raise ValidationError('User id expected, empty value given.')
    grades = state.get("gradebook", {}).get(str(userid))
    if not grades:
        return None
    if grades.get("submissiongrade") is None and grades.get("assessmentgrade") is None:
        return None
    return grades
