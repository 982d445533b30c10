"""
Example Submissions
===================
Teachers provide example submissions together with a reference assessment
(weight 1). Reviewers practise on them with their own assessments (weight 0),
which the calibration methods compare against the references.

When the workshop asks for a fixed number of examples per reviewer, every
reviewer gets a stable selection spread across the range of reference
grades.
"""
import random
import logging

from ..errors import PermissionDenied, PhaseError, ValidationError
from .. import phases
from . import workshop_service as ws

logger = logging.getLogger(__name__)


def get_reference_assessment(state: dict, example_id):
    """The teacher's assessment of an example submission."""
    for a in ws.get_assessments_of_submission(state, example_id):
        if a["weight"] > 0:
            return a
    return None


def get_examples_for_manager(state: dict) -> list:
    """Example submissions with the grade of their reference assessment.

    Ordered by reference grade, title and id so that repeated calls always
    return the identical sequence.
    """
    examples = []
    for s in state["submissions"]:
        if not s.get("example"):
            continue
        reference = get_reference_assessment(state, s["id"])
        examples.append({
            "id": s["id"],
            "title": s["title"],
            "authorid": s["authorid"],
            "assessmentid": reference["id"] if reference else None,
            "grade": reference["grade"] if reference else None,
        })
    examples.sort(key=lambda e: (e["grade"] is not None, e["grade"] or 0, e["title"], e["id"]))
    return examples


def slice_example_submissions(examples: list, n: int) -> list:
    """Split examples into n near-even slices, e.g. 10 into 3,2,3,2 for n=4."""
    slices = []
    f = len(examples) / n
    for i in range(n):
        lo = _round_half_up(i * f)
        hi = _round_half_up((i + 1) * f)
        slices.append(examples[lo:hi])
    return slices


def _round_half_up(x: float) -> int:
    return int(x + 0.5)


def _pick_new_examples(slices, skip, rng):
    """Draw one example per slice not in skip.

    After drawing the top example of a slice, the bottom one of the next slice
    is left out, and so are examples with the same reference grade as the
    previous pick.
    """
    picks = []
    picked_top = False
    last_grade = None
    for i, s in enumerate(slices):
        if i in skip or not s:
            continue
        candidates = list(s)
        remove = set()
        if picked_top:
            remove.add(candidates[0]["id"])
        for e in candidates:
            if last_grade is not None and e["grade"] == last_grade:
                remove.add(e["id"])
        if len(remove) < len(candidates):
            candidates = [e for e in candidates if e["id"] not in remove]

        pick = rng.choice(candidates)
        picks.append(pick["id"])
        picked_top = pick["id"] == s[-1]["id"]
        last_grade = pick["grade"]

    rng.shuffle(picks)
    return picks


def _n_examples_for_reviewer(state: dict, n: int, reviewerid: str, rng) -> list:
    remembered = state.setdefault("user_examples", {}).setdefault(reviewerid, [])

    if len(remembered) == n:
        return list(remembered)

    all_examples = get_examples_for_manager(state)
    if n > len(all_examples):
        return [e["id"] for e in all_examples]

    slices = slice_example_submissions(all_examples, n)

    if len(remembered) < n:
        skip = set()
        for i, s in enumerate(slices):
            if any(e["id"] in remembered for e in s):
                skip.add(i)
        picks = _pick_new_examples(slices, skip, rng)[:n - len(remembered)]
        remembered.extend(picks)
        return list(remembered)

    # More remembered than needed: keep the first remembered pick of each
    # slice so that work on the others is not lost if n grows again.
    selected = []
    for s in slices:
        ids = {e["id"] for e in s}
        for exampleid in remembered:
            if exampleid in ids:
                selected.append(exampleid)
                break
    return selected


def get_examples_for_reviewer(state: dict, reviewerid, rng=None) -> list:
    """Example submissions the reviewer should assess, with their own assessment."""
    reviewerid = str(reviewerid)
    rng = rng or random.Random()
    numexamples = int(state["workshop"].get("numexamples") or 0)

    examples = [s for s in state["submissions"] if s.get("example")]
    if numexamples > 0:
        selected = set(_n_examples_for_reviewer(state, numexamples, reviewerid, rng))
        examples = [s for s in examples if s["id"] in selected]

    result = []
    for s in sorted(examples, key=lambda s: s["title"]):
        own = None
        for a in ws.get_assessments_of_submission(state, s["id"]):
            if a["reviewerid"] == reviewerid and a["weight"] == 0:
                own = a
                break
        result.append({
            "id": s["id"],
            "title": s["title"],
            "assessmentid": own["id"] if own else None,
            "grade": own["grade"] if own else None,
            "gradinggrade": own["gradinggrade"] if own else None,
        })
    return result


def start_example_assessment(state: dict, example_id, userid, rng=None) -> dict:
    """Get or create the user's assessment of an example submission.

    Teachers create the reference assessment, reviewers a practice one.
    """
    userid = str(userid)
    example = ws.get_submission(state, example_id)
    if not example.get("example"):
        raise ValidationError("Not an example submission")

    existing = ws.get_assessment_of_submission_by_user(state, example["id"], userid)
    if existing is not None:
        return existing

    if ws.is_teacher(state, userid):
        if get_reference_assessment(state, example["id"]) is not None:
            raise ValidationError("The example already has a reference assessment")
        assessment_id = ws.add_allocation(state, example, userid, weight=1, user=userid)
        return ws.get_assessment(state, assessment_id)

    if not ws.is_participant(state, userid):
        raise PermissionDenied("Only participants can assess examples")
    if not phases.assessing_examples_allowed(state["workshop"]):
        raise PhaseError("Assessing example submissions is not allowed at the moment")
    allowed = {e["id"] for e in get_examples_for_reviewer(state, userid, rng=rng)}
    if example["id"] not in allowed:
        raise PermissionDenied("This example is not assigned to you")

    assessment_id = ws.add_allocation(state, example, userid, weight=0, user=userid)
    return ws.get_assessment(state, assessment_id)
