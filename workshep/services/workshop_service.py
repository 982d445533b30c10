"""
Workshop Service
================
Core operations on a workshop state: settings, participants, submissions,
reviewer allocations and assessments.

All functions take the state dict returned by storage.load_workshop() and
mutate it in place. Persisting the state is the caller's job.
"""
import time
import logging

from ..audit import audit_log
from ..config import (
    DEFAULT_GRADE, DEFAULT_GRADING_GRADE, DEFAULT_STRATEGY, DEFAULT_EVALUATION,
    DEFAULT_CALIBRATION_METHOD, DEFAULT_GRADE_DECIMALS, MAX_ASSESSMENT_WEIGHT, config,
)
from ..errors import (
    AllocationExists, NotFoundError, PermissionDenied, PhaseError, ValidationError,
)
from ..grades import grade_floatval, raw_grade_value
from .. import phases
from .. import storage
from ..strategies import STRATEGIES, get_strategy

logger = logging.getLogger(__name__)

ROLE_TEACHER = "teacher"
ROLE_STUDENT = "student"

# Submitter flag states on an assessment
FLAG_NONE = 0
FLAG_PENDING = 1
FLAG_RESOLVED = -1

DEFAULT_SETTINGS = {
    "name": "",
    "intro": "",
    "instructauthors": "",
    "instructreviewers": "",
    "conclusion": "",
    "phase": phases.PHASE_SETUP,
    "grade": DEFAULT_GRADE,
    "gradinggrade": DEFAULT_GRADING_GRADE,
    "strategy": DEFAULT_STRATEGY,
    "evaluation": DEFAULT_EVALUATION,
    "gradedecimals": DEFAULT_GRADE_DECIMALS,
    "latesubmissions": False,
    "submissionstart": 0,
    "submissionend": 0,
    "assessmentstart": 0,
    "assessmentend": 0,
    "phaseswitchassessment": False,
    "useexamples": False,
    "examplesmode": phases.EXAMPLES_VOLUNTARY,
    "useselfassessment": False,
    "usecalibration": False,
    "calibrationphase": phases.PHASE_SUBMISSION,
    "calibrationmethod": DEFAULT_CALIBRATION_METHOD,
    "numexamples": 0,
    "submitterflagging": False,
    "teammode": False,
}


def _now(now=None) -> int:
    return int(time.time()) if now is None else int(now)


# ══════════════════════════════════════════════════════════════
# WORKSHOP SETTINGS
# ══════════════════════════════════════════════════════════════

def _as_int(value, what: str) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{what} must be a whole number")


def _clamp_weight(weight) -> int:
    return min(max(_as_int(weight, "weight"), 0), MAX_ASSESSMENT_WEIGHT)


def validate_settings(settings: dict):
    """Raise ValidationError for any invalid workshop setting in the dict."""
    from ..evaluation import EVALUATORS
    from ..calibration import CALIBRATION_METHODS

    for key in ("grade", "gradinggrade"):
        if key in settings:
            try:
                if float(settings[key]) < 0:
                    raise ValidationError(f"{key} must not be negative")
            except (TypeError, ValueError):
                raise ValidationError(f"{key} must be a number")
    if "strategy" in settings and settings["strategy"] not in STRATEGIES:
        raise ValidationError(f"Unknown grading strategy: {settings['strategy']}")
    if "evaluation" in settings and settings["evaluation"] not in EVALUATORS:
        raise ValidationError(f"Unknown grading evaluation: {settings['evaluation']}")
    if "calibrationmethod" in settings and settings["calibrationmethod"] not in CALIBRATION_METHODS:
        raise ValidationError(f"Unknown calibration method: {settings['calibrationmethod']}")
    if "examplesmode" in settings and settings["examplesmode"] not in (
            phases.EXAMPLES_VOLUNTARY, phases.EXAMPLES_BEFORE_SUBMISSION, phases.EXAMPLES_BEFORE_ASSESSMENT):
        raise ValidationError("Unknown examples mode")
    if "calibrationphase" in settings and settings["calibrationphase"] not in phases.PHASE_NAMES:
        raise ValidationError("Unknown calibration phase")
    if "numexamples" in settings and _as_int(settings["numexamples"], "numexamples") < 0:
        raise ValidationError("numexamples must not be negative")
    if "gradedecimals" in settings and not 0 <= _as_int(settings["gradedecimals"], "gradedecimals") <= 5:
        raise ValidationError("gradedecimals must be between 0 and 5")


def create_workshop(settings: dict, user: str = "system") -> dict:
    """Create and persist a new workshop in the setup phase."""
    settings = {k: v for k, v in (settings or {}).items() if k in DEFAULT_SETTINGS}
    settings.pop("phase", None)

    workshop = dict(DEFAULT_SETTINGS)
    # runtime defaults may have been changed through the config API
    workshop.update({
        "grade": config.default_grade,
        "gradinggrade": config.default_grading_grade,
        "strategy": config.default_strategy,
        "evaluation": config.default_evaluation,
    })
    workshop.update(settings)
    validate_settings(workshop)
    workshop["timemodified"] = _now()

    state = storage.create_workshop_state(workshop)
    logger.info("Created workshop %s (%s)", state["workshop"]["id"], workshop["name"])
    audit_log("WORKSHOP_CREATED", f"workshop={state['workshop']['id']}", user)
    return state


def update_workshop(state: dict, settings: dict) -> dict:
    """Update the workshop settings. The phase is changed via switch_phase() only."""
    settings = {k: v for k, v in (settings or {}).items() if k in DEFAULT_SETTINGS and k != "phase"}
    validate_settings(settings)

    workshop = state["workshop"]
    if "strategy" in settings and settings["strategy"] != workshop["strategy"]:
        if any(a.get("grade") is not None for a in state["assessments"]):
            raise PhaseError("The grading strategy can not be changed once assessments exist")
        state["form"] = {}
        state["grades"] = []

    workshop.update(settings)
    workshop["timemodified"] = _now()
    return workshop


def save_form(state: dict, form: dict) -> dict:
    """Store the assessment form definition for the current strategy."""
    if state["workshop"]["phase"] not in (phases.PHASE_SETUP, phases.PHASE_SUBMISSION):
        raise PhaseError("The assessment form can only be edited before the assessment starts")
    return get_strategy(state).save_form(form)


def switch_phase(state: dict, new_phase, user: str = "system") -> int:
    """Switch to a new workshop phase.

    Entering the closed phase pushes the final grades into the gradebook.
    """
    from .aggregation_service import update_gradebook

    workshop = state["workshop"]
    code = phases.phase_code(new_phase)
    if code not in phases.available_phases(workshop):
        raise PhaseError(f"Unknown or unavailable phase: {new_phase}")

    if code == phases.PHASE_CLOSED:
        update_gradebook(state, user=user)

    previous = workshop["phase"]
    workshop["phase"] = code
    logger.info("Workshop %s switched from %s to %s",
                workshop["id"], phases.phase_name(previous), phases.phase_name(code))
    audit_log("PHASE_SWITCHED",
              f"workshop={workshop['id']} from={phases.phase_name(previous)} to={phases.phase_name(code)}",
              user)
    return code


# ══════════════════════════════════════════════════════════════
# PARTICIPANTS
# ══════════════════════════════════════════════════════════════

def add_participant(state: dict, userid, firstname: str = "", lastname: str = "",
                    role: str = ROLE_STUDENT, group=None) -> dict:
    """Enrol a user or update their details."""
    if role not in (ROLE_TEACHER, ROLE_STUDENT):
        raise ValidationError(f"Unknown role: {role}")
    userid = str(userid)
    participant = get_participant(state, userid)
    if participant is None:
        participant = {"id": userid}
        state["participants"].append(participant)
    participant.update({
        "firstname": firstname,
        "lastname": lastname,
        "role": role,
        "group": group,
    })
    return participant


def remove_participant(state: dict, userid):
    userid = str(userid)
    before = len(state["participants"])
    state["participants"] = [p for p in state["participants"] if p["id"] != userid]
    if len(state["participants"]) == before:
        raise NotFoundError(f"Participant not found: {userid}")


def get_participant(state: dict, userid):
    userid = str(userid)
    for p in state["participants"]:
        if p["id"] == userid:
            return p
    return None


def get_participants(state: dict, role: str = ROLE_STUDENT, group=None,
                     musthavesubmission: bool = False) -> list:
    """Participants with the given role, optionally limited to a group."""
    result = []
    authors = None
    if musthavesubmission:
        authors = {s["authorid"] for s in get_submissions(state)}
    for p in state["participants"]:
        if role is not None and p.get("role") != role:
            continue
        if group is not None and p.get("group") != group:
            continue
        if authors is not None and p["id"] not in authors:
            continue
        result.append(p)
    return result


def is_participant(state: dict, userid) -> bool:
    p = get_participant(state, userid)
    return p is not None and p.get("role") == ROLE_STUDENT


def is_teacher(state: dict, userid) -> bool:
    p = get_participant(state, userid)
    return p is not None and p.get("role") == ROLE_TEACHER


def user_group(state: dict, userid):
    p = get_participant(state, userid)
    return p.get("group") if p else None


def same_team(state: dict, userid, otherid) -> bool:
    """Do both users belong to the same non-empty group?"""
    if str(userid) == str(otherid):
        return True
    group = user_group(state, userid)
    return group is not None and group == user_group(state, otherid)


# ══════════════════════════════════════════════════════════════
# SUBMISSIONS
# ══════════════════════════════════════════════════════════════

def get_submission(state: dict, submission_id) -> dict:
    try:
        submission_id = int(submission_id)
    except (TypeError, ValueError):
        raise NotFoundError(f"Submission not found: {submission_id}")
    for s in state["submissions"]:
        if s["id"] == submission_id:
            return s
    raise NotFoundError(f"Submission not found: {submission_id}")


def get_submissions(state: dict, authorid=None) -> list:
    """Non-example submissions, optionally only those by the given author(s)."""
    if authorid is not None and not isinstance(authorid, (list, tuple, set)):
        authorid = [authorid]
    if authorid is not None:
        authorid = {str(a) for a in authorid}
    return [
        s for s in state["submissions"]
        if not s.get("example") and (authorid is None or s["authorid"] in authorid)
    ]


def get_submission_by_author(state: dict, authorid):
    """The author's submission. In team mode, the submission of the author's group."""
    authorid = str(authorid)
    for s in get_submissions(state):
        if s["authorid"] == authorid:
            return s
    if state["workshop"].get("teammode") and user_group(state, authorid) is not None:
        for s in get_submissions(state):
            if same_team(state, authorid, s["authorid"]):
                return s
    return None


def get_published_submissions(state: dict) -> list:
    published = [s for s in get_submissions(state) if s.get("published")]
    return sorted(published, key=lambda s: final_submission_grade(s) or 0, reverse=True)


def final_submission_grade(submission: dict):
    """The teacher's override if given, otherwise the aggregated grade."""
    if submission.get("gradeover") is not None:
        return submission["gradeover"]
    return submission.get("grade")


def _new_submission(state, authorid, title, content, example, now):
    return {
        "id": storage.next_id(state, "submissions"),
        "authorid": str(authorid),
        "example": bool(example),
        "title": title,
        "content": content,
        "grade": None,
        "gradeover": None,
        "gradeoverby": None,
        "feedbackauthor": None,
        "published": False,
        "timecreated": now,
        "timemodified": now,
        "timegraded": None,
    }


def create_submission(state: dict, authorid, title: str, content: str = "",
                      example: bool = False, now=None) -> dict:
    """Create the author's submission, or an example submission for teachers."""
    if not title or not str(title).strip():
        raise ValidationError("Submission title is required")
    now = _now(now)
    workshop = state["workshop"]
    teacher = is_teacher(state, authorid)

    if example:
        if not teacher:
            raise PermissionDenied("Only teachers can add example submissions")
        if not workshop.get("useexamples"):
            raise ValidationError("Example submissions are not enabled in this workshop")
    else:
        if not is_participant(state, authorid):
            raise PermissionDenied("Only participants can submit")
        if not phases.creating_submission_allowed(workshop, ignore_deadlines=False, now=now):
            raise PhaseError("Submitting is not allowed at the moment")
        if get_submission_by_author(state, authorid) is not None:
            raise ValidationError("A submission already exists for this author")

    submission = _new_submission(state, authorid, title, content, example, now)
    state["submissions"].append(submission)
    logger.info("Submission %s created by %s", submission["id"], authorid)
    audit_log("SUBMISSION_CREATED",
              f"workshop={workshop['id']} submission={submission['id']} example={int(bool(example))}",
              str(authorid))
    return submission


def update_submission(state: dict, submission_id, userid, title=None, content=None, now=None) -> dict:
    now = _now(now)
    submission = get_submission(state, submission_id)
    userid = str(userid)

    if submission.get("example"):
        if not is_teacher(state, userid):
            raise PermissionDenied("Only teachers can edit example submissions")
    else:
        ownsubmission = submission["authorid"] == userid or (
            state["workshop"].get("teammode") and same_team(state, userid, submission["authorid"]))
        if not ownsubmission:
            raise PermissionDenied("You can only edit your own submission")
        if not phases.modifying_submission_allowed(state["workshop"], now=now):
            raise PhaseError("Editing the submission is not allowed at the moment")

    if title is not None:
        if not str(title).strip():
            raise ValidationError("Submission title is required")
        submission["title"] = title
    if content is not None:
        submission["content"] = content
    submission["timemodified"] = now
    audit_log("SUBMISSION_UPDATED", f"workshop={state['workshop']['id']} submission={submission['id']}", userid)
    return submission


def delete_submission(state: dict, submission_id, user: str = "system"):
    """Delete a submission together with all its assessments."""
    submission = get_submission(state, submission_id)
    assessments = [a["id"] for a in state["assessments"] if a["submissionid"] == submission["id"]]
    delete_assessment(state, assessments)
    state["submissions"] = [s for s in state["submissions"] if s["id"] != submission["id"]]
    audit_log("SUBMISSION_DELETED", f"workshop={state['workshop']['id']} submission={submission['id']}", user)


def publish_submission(state: dict, submission_id, published: bool = True) -> dict:
    submission = get_submission(state, submission_id)
    if submission.get("example"):
        raise ValidationError("Example submissions can not be published")
    submission["published"] = bool(published)
    return submission


def override_submission_grade(state: dict, submission_id, grade, userid, feedbackauthor=None) -> dict:
    """Override the aggregated grade for submission. grade is a real grade or None."""
    submission = get_submission(state, submission_id)
    if submission.get("example"):
        raise ValidationError("Example submissions are not graded")
    workshop = state["workshop"]
    if grade is None or grade == '':
        submission["gradeover"] = None
        submission["gradeoverby"] = None
    else:
        try:
            grade = float(grade)
        except (TypeError, ValueError):
            raise ValidationError("The grade must be a number")
        if grade < 0 or grade > workshop["grade"]:
            raise ValidationError(f"The grade must be between 0 and {workshop['grade']}")
        submission["gradeover"] = raw_grade_value(grade, workshop["grade"])
        submission["gradeoverby"] = str(userid)
    if feedbackauthor is not None:
        submission["feedbackauthor"] = feedbackauthor
    return submission


# ══════════════════════════════════════════════════════════════
# ALLOCATIONS AND ASSESSMENTS
# ══════════════════════════════════════════════════════════════

def get_assessment(state: dict, assessment_id) -> dict:
    try:
        assessment_id = int(assessment_id)
    except (TypeError, ValueError):
        raise NotFoundError(f"Assessment not found: {assessment_id}")
    for a in state["assessments"]:
        if a["id"] == assessment_id:
            return a
    raise NotFoundError(f"Assessment not found: {assessment_id}")


def _example_ids(state) -> set:
    return {s["id"] for s in state["submissions"] if s.get("example")}


def get_all_assessments(state: dict) -> list:
    """Assessments of real (non-example) submissions."""
    examples = _example_ids(state)
    return [a for a in state["assessments"] if a["submissionid"] not in examples]


def get_assessment_of_submission_by_user(state: dict, submission_id, reviewerid):
    reviewerid = str(reviewerid)
    for a in state["assessments"]:
        if a["submissionid"] == int(submission_id) and a["reviewerid"] == reviewerid:
            return a
    return None


def get_assessments_of_submission(state: dict, submission_id) -> list:
    submission_id = int(submission_id)
    return [a for a in state["assessments"] if a["submissionid"] == submission_id]


def get_assessments_by_reviewer(state: dict, reviewerid) -> list:
    reviewerid = str(reviewerid)
    return [a for a in get_all_assessments(state) if a["reviewerid"] == reviewerid]


def get_pending_assessments_by_reviewer(state: dict, reviewerid, exclude=None) -> list:
    """Allocated assessments the reviewer has not graded yet."""
    if exclude is None:
        exclude = set()
    elif isinstance(exclude, (list, tuple, set)):
        exclude = {int(e) for e in exclude}
    else:
        exclude = {int(exclude)}
    return [
        a for a in get_assessments_by_reviewer(state, reviewerid)
        if a.get("grade") is None and a["id"] not in exclude
    ]


def add_allocation(state: dict, submission: dict, reviewerid, weight: int = 1,
                   now=None, user: str = "system") -> int:
    """Allocate a submission to a reviewer. Returns the new assessment id."""
    reviewerid = str(reviewerid)
    weight = _clamp_weight(weight)

    if get_assessment_of_submission_by_user(state, submission["id"], reviewerid) is not None:
        raise AllocationExists(
            f"Reviewer {reviewerid} is already allocated to submission {submission['id']}")

    now = _now(now)
    assessment = {
        "id": storage.next_id(state, "assessments"),
        "submissionid": submission["id"],
        "reviewerid": reviewerid,
        "weight": weight,
        "grade": None,
        "gradinggrade": None,
        "gradinggradeover": None,
        "gradinggradeoverby": None,
        "feedbackauthor": None,
        "feedbackreviewer": None,
        "submitterflagged": FLAG_NONE,
        "timecreated": now,
        "timemodified": None,
    }
    state["assessments"].append(assessment)
    audit_log("ASSESSMENT_ALLOCATED",
              f"workshop={state['workshop']['id']} submission={submission['id']} reviewer={reviewerid}",
              user)
    return assessment["id"]


def delete_assessment(state: dict, assessment_id, user: str = "system") -> bool:
    """Delete one or more assessments including their dimension grades."""
    if not assessment_id:
        return True
    if isinstance(assessment_id, (list, tuple, set)):
        ids = {int(i) for i in assessment_id}
    else:
        ids = {int(assessment_id)}
    state["grades"] = [g for g in state["grades"] if g["assessmentid"] not in ids]
    state["assessments"] = [a for a in state["assessments"] if a["id"] not in ids]
    audit_log("ASSESSMENT_DELETED",
              f"workshop={state['workshop']['id']} assessments={sorted(ids)}", user)
    return True


def get_dimension_grades(state: dict, assessment_id) -> list:
    return [g for g in state["grades"] if g["assessmentid"] == int(assessment_id)]


def _normalize_grades(grades: dict) -> dict:
    normalized = {}
    for dimid, value in (grades or {}).items():
        try:
            dimid = int(dimid)
        except (TypeError, ValueError):
            raise ValidationError(f"Invalid dimension id: {dimid}")
        if isinstance(value, dict):
            value = value.get("grade")
        try:
            normalized[dimid] = float(value) if value is not None else None
        except (TypeError, ValueError):
            raise ValidationError(f"Invalid grade for dimension {dimid}")
    return normalized


def _check_can_assess(state, assessment, submission, userid, now):
    workshop = state["workshop"]
    teacher = is_teacher(state, userid)

    if submission.get("example"):
        if teacher:
            return
        if assessment["reviewerid"] != userid:
            raise PermissionDenied("This is not your assessment")
        if not phases.assessing_examples_allowed(workshop):
            raise PhaseError("Assessing example submissions is not allowed at the moment")
        return

    if assessment["reviewerid"] != userid and not teacher:
        raise PermissionDenied("This is not your assessment")
    if not phases.assessing_allowed(workshop, can_override=teacher, ignore_deadlines=teacher, now=now):
        raise PhaseError("Assessing is not allowed at the moment")


def save_assessment(state: dict, assessment_id, userid, grades: dict,
                    comments: dict = None, feedbackauthor: str = None, now=None) -> dict:
    """Store the reviewer's dimension grades and compute the peer grade."""
    now = _now(now)
    userid = str(userid)
    assessment = get_assessment(state, assessment_id)
    submission = get_submission(state, assessment["submissionid"])
    _check_can_assess(state, assessment, submission, userid, now)

    strategy = get_strategy(state)
    if not strategy.form_ready():
        raise ValidationError("The assessment form is not ready yet")
    grades = _normalize_grades(grades)
    strategy.validate_grades(grades)
    comments = {int(k): v for k, v in (comments or {}).items()}

    state["grades"] = [g for g in state["grades"] if g["assessmentid"] != assessment["id"]]
    records = []
    for dimid, grade in sorted(grades.items()):
        record = {
            "assessmentid": assessment["id"],
            "strategy": strategy.name,
            "dimensionid": dimid,
            "grade": grade_floatval(grade),
            "peercomment": comments.get(dimid, ""),
        }
        records.append(record)
        state["grades"].append(record)

    if feedbackauthor is not None:
        assessment["feedbackauthor"] = feedbackauthor
    set_peer_grade(state, assessment["id"], strategy.calculate_peer_grade(records), now=now)
    logger.info("Assessment %s saved by %s, grade %s", assessment["id"], userid, assessment["grade"])
    return assessment


def set_peer_grade(state: dict, assessment_id, grade, now=None):
    """Save the raw percentual grade calculated from the assessment form."""
    if grade is None:
        return False
    assessment = get_assessment(state, assessment_id)
    assessment["grade"] = grade_floatval(grade)
    assessment["timemodified"] = _now(now)
    return assessment["grade"]


def override_grading_grade(state: dict, assessment_id, userid, gradinggradeover=None,
                           weight=None, feedbackreviewer=None) -> dict:
    """Teacher feedback for the reviewer: grading grade override and weight.

    gradinggradeover is a real grade out of the workshop's grading grade,
    or None to remove the override.
    """
    assessment = get_assessment(state, assessment_id)
    workshop = state["workshop"]
    if gradinggradeover is None or gradinggradeover == '':
        assessment["gradinggradeover"] = None
        assessment["gradinggradeoverby"] = None
    else:
        try:
            value = float(gradinggradeover)
        except (TypeError, ValueError):
            raise ValidationError("The grading grade must be a number")
        if value < 0 or value > workshop["gradinggrade"]:
            raise ValidationError(f"The grading grade must be between 0 and {workshop['gradinggrade']}")
        assessment["gradinggradeover"] = raw_grade_value(value, workshop["gradinggrade"])
        assessment["gradinggradeoverby"] = str(userid)
    if weight is not None:
        assessment["weight"] = _clamp_weight(weight)
    if feedbackreviewer is not None:
        assessment["feedbackreviewer"] = feedbackreviewer
    return assessment


def clear_assessments(state: dict, user: str = "system"):
    """Null the calculated grades so that reviewers have to re-assess.

    The filled-in forms themselves are kept.
    """
    submissions = {s["id"] for s in get_submissions(state)}
    for a in state["assessments"]:
        if a["submissionid"] in submissions:
            a["grade"] = None
            a["gradinggrade"] = None
    audit_log("ASSESSMENTS_CLEARED", f"workshop={state['workshop']['id']}", user)


# ══════════════════════════════════════════════════════════════
# RESET
# ══════════════════════════════════════════════════════════════

def _reset_userdata_assessments(state):
    """Remove assessments (allocations included) except the reference ones."""
    examples = _example_ids(state)
    ids = [
        a["id"] for a in state["assessments"]
        if a["submissionid"] not in examples or a["weight"] == 0
    ]
    delete_assessment(state, ids)
    state["aggregations"] = {}
    state["calibration_scores"] = {}
    state["user_examples"] = {}


def _reset_userdata_submissions(state):
    for submission in list(get_submissions(state)):
        delete_submission(state, submission["id"])
    state["gradebook"] = {}


def reset_userdata(state: dict, assessments: bool = False, submissions: bool = False,
                   phase: bool = False, user: str = "system") -> list:
    """Reset the user data of this workshop. Returns a status list."""
    status = []
    name = state["workshop"].get("name", "")

    if assessments or submissions:
        _reset_userdata_assessments(state)
        status.append({"component": name, "item": "assessments", "error": False})

    if submissions:
        _reset_userdata_submissions(state)
        status.append({"component": name, "item": "submissions", "error": False})

    if phase:
        # no phase switch event here, the phase is hard set
        state["workshop"]["phase"] = phases.PHASE_SETUP
        status.append({"component": name, "item": "phase", "error": False})

    audit_log("WORKSHOP_RESET",
              f"workshop={state['workshop']['id']} items={[s['item'] for s in status]}", user)
    return status
