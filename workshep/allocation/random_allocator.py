"""
Random allocation
=================
Allocates a fixed number of reviews per submission, or per reviewer,
keeping the workload even: every pick goes to the least loaded eligible
candidate and ties are broken at random.
"""
import random
import logging

from ..errors import ValidationError
from ..services import workshop_service as ws
from .base import Allocator, AllocationResult

logger = logging.getLogger(__name__)

NUMPER_SUBMISSION = 'submission'
NUMPER_REVIEWER = 'reviewer'

DEFAULT_SETTINGS = {
    "numofreviews": 5,
    "numper": NUMPER_SUBMISSION,
    "removecurrent": False,
    "assesswosubmission": False,
    "addselfassessment": False,
    "excludesamegroup": False,
}


def clean_settings(settings: dict) -> dict:
    cleaned = dict(DEFAULT_SETTINGS)
    cleaned.update({k: v for k, v in (settings or {}).items() if k in DEFAULT_SETTINGS})
    try:
        cleaned["numofreviews"] = int(cleaned["numofreviews"])
    except (TypeError, ValueError):
        raise ValidationError("numofreviews must be a number")
    if cleaned["numofreviews"] < 0:
        raise ValidationError("numofreviews must not be negative")
    if cleaned["numper"] not in (NUMPER_SUBMISSION, NUMPER_REVIEWER):
        raise ValidationError(f"numper must be '{NUMPER_SUBMISSION}' or '{NUMPER_REVIEWER}'")
    for key in ("removecurrent", "assesswosubmission", "addselfassessment", "excludesamegroup"):
        cleaned[key] = bool(cleaned[key])
    return cleaned


class RandomAllocator(Allocator):

    name = "random"

    def __init__(self, state: dict, rng=None):
        super().__init__(state)
        self.rng = rng or random.Random()

    def init(self, settings: dict, user: str = "system") -> AllocationResult:
        result = AllocationResult(self.name)
        self.execute(clean_settings(settings), result, user=user)
        return result

    def _is_own(self, submission: dict, reviewerid: str) -> bool:
        if submission["authorid"] == reviewerid:
            return True
        return bool(self.state["workshop"].get("teammode")) and ws.same_team(
            self.state, reviewerid, submission["authorid"])

    def _eligible(self, submission: dict, reviewerid: str, settings: dict, allocated: set) -> bool:
        if (submission["id"], reviewerid) in allocated:
            return False
        if self._is_own(submission, reviewerid):
            return False
        if settings["excludesamegroup"]:
            group = ws.user_group(self.state, reviewerid)
            if group is not None and group == ws.user_group(self.state, submission["authorid"]):
                return False
        return True

    def _least_loaded(self, candidates: list, load: dict):
        lowest = min(load[c] for c in candidates)
        return self.rng.choice([c for c in candidates if load[c] == lowest])

    def execute(self, settings: dict, result: AllocationResult, user: str = "system") -> AllocationResult:
        """Run the allocation with already cleaned settings."""
        state = self.state
        submissions = ws.get_submissions(state)
        if not submissions:
            result.log("No submissions to allocate", 'info')
            result.set_status(AllocationResult.STATUS_VOID, "No submissions to allocate")
            return result

        reviewers = [p["id"] for p in ws.get_participants(
            state, musthavesubmission=not settings["assesswosubmission"])]
        if not settings["assesswosubmission"] and state["workshop"].get("teammode"):
            # team members review even when a teammate submitted
            reviewers = [p["id"] for p in ws.get_participants(state)
                         if ws.get_submission_by_author(state, p["id"]) is not None]

        if settings["removecurrent"]:
            remove = []
            for a in ws.get_all_assessments(state):
                submission = ws.get_submission(state, a["submissionid"])
                if not (settings["addselfassessment"] and submission["authorid"] == a["reviewerid"]):
                    remove.append(a["id"])
            if remove:
                ws.delete_assessment(state, remove, user=user)
                result.counters["removed"] += len(remove)
                result.log(f"Removed {len(remove)} current allocations")

        allocated = {(a["submissionid"], a["reviewerid"]) for a in ws.get_all_assessments(state)}
        reviewer_load = {r: 0 for r in reviewers}
        submission_load = {s["id"]: 0 for s in submissions}
        for submissionid, reviewerid in allocated:
            if reviewerid in reviewer_load:
                reviewer_load[reviewerid] += 1
            if submissionid in submission_load:
                submission_load[submissionid] += 1

        n = settings["numofreviews"]
        new = []
        if settings["numper"] == NUMPER_SUBMISSION:
            order = list(submissions)
            self.rng.shuffle(order)
            for submission in order:
                while submission_load[submission["id"]] < n:
                    candidates = [r for r in reviewers if self._eligible(submission, r, settings, allocated)]
                    if not candidates:
                        result.log(f"Not enough reviewers for the submission of {submission['authorid']}",
                                   'info')
                        break
                    reviewerid = self._least_loaded(candidates, reviewer_load)
                    allocated.add((submission["id"], reviewerid))
                    reviewer_load[reviewerid] += 1
                    submission_load[submission["id"]] += 1
                    new.append((submission, reviewerid))
        else:
            by_id = {s["id"]: s for s in submissions}
            order = list(reviewers)
            self.rng.shuffle(order)
            for reviewerid in order:
                while reviewer_load[reviewerid] < n:
                    candidates = [sid for sid, s in by_id.items() if self._eligible(s, reviewerid, settings, allocated)]
                    if not candidates:
                        result.log(f"Not enough submissions for reviewer {reviewerid}", 'info')
                        break
                    submissionid = self._least_loaded(candidates, submission_load)
                    allocated.add((submissionid, reviewerid))
                    reviewer_load[reviewerid] += 1
                    submission_load[submissionid] += 1
                    new.append((by_id[submissionid], reviewerid))

        if settings["addselfassessment"]:
            for submission in submissions:
                if (submission["id"], submission["authorid"]) not in allocated:
                    allocated.add((submission["id"], submission["authorid"]))
                    new.append((submission, submission["authorid"]))

        for submission, reviewerid in new:
            ws.add_allocation(state, submission, reviewerid, user=user)
            result.counters["allocated"] += 1
            result.log(f"{reviewerid} reviews the submission of {submission['authorid']}", 'ok', indent=1)

        logger.info("Random allocation in workshop %s: %s", state["workshop"]["id"], result.counters)
        result.set_status(AllocationResult.STATUS_EXECUTED,
                          f"Allocated {result.counters['allocated']} new reviews")
        return result
