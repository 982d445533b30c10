"""
Shared test fixtures for Workshep.
Monkeypatches the storage and audit path constants to a temporary directory.
"""
import pytest

from workshep import audit, phases, storage
from workshep.services import workshop_service as ws

STUDENTS = [
    ("s1", "Ann", "Adams", "A"),
    ("s2", "Bob", "Brown", "A"),
    ("s3", "Cid", "Clark", "B"),
    ("s4", "Dee", "Davis", "B"),
]

ACCUMULATIVE_FORM = {
    "dimensions": [
        {"description": "Content", "grade": 10, "weight": 1},
        {"description": "Style", "grade": 10, "weight": 1},
    ],
}


@pytest.fixture(autouse=True)
def patch_paths(monkeypatch, tmp_path):
    """Point every persisted file at tmp_path."""
    monkeypatch.setattr(storage, "WORKSHOPS_DIR", str(tmp_path / "workshops"))
    monkeypatch.setattr(audit, "AUDIT_LOG_FILE", str(tmp_path / "audit.log"))
    return tmp_path


@pytest.fixture
def workshop():
    """A workshop in the setup phase with a teacher, four students and a two criteria form."""
    state = ws.create_workshop({"name": "Essay", "submitterflagging": True}, user="t1")
    ws.add_participant(state, "t1", "Tina", "Teacher", role=ws.ROLE_TEACHER)
    for userid, first, last, group in STUDENTS:
        ws.add_participant(state, userid, first, last, group=group)
    ws.save_form(state, ACCUMULATIVE_FORM)
    return state


@pytest.fixture
def submitted(workshop):
    """Every student has submitted; the workshop is in the submission phase."""
    ws.switch_phase(workshop, phases.PHASE_SUBMISSION, user="t1")
    for userid, first, _, _ in STUDENTS:
        ws.create_submission(workshop, userid, f"Essay by {first}", "text", now=100)
    return workshop


@pytest.fixture
def submission_of():
    def _submission_of(state, authorid):
        return ws.get_submission_by_author(state, authorid)
    return _submission_of


@pytest.fixture
def allocate(submission_of):
    """Allocate reviewerid to the submission of authorid, returns the assessment id."""
    def _allocate(state, authorid, reviewerid, weight=1):
        return ws.add_allocation(state, submission_of(state, authorid), reviewerid, weight=weight)
    return _allocate


@pytest.fixture
def assess():
    """Fill in an assessment with one grade per criterion of the form."""
    def _assess(state, assessment_id, reviewerid, *grades):
        dimids = sorted(d["id"] for d in state["form"]["dimensions"])
        return ws.save_assessment(state, assessment_id, reviewerid, dict(zip(dimids, grades)))
    return _assess
