"""
Manual allocation: add or remove single reviewer-author pairs, or upload a
CSV where every line holds an author followed by their reviewers.
"""
import csv
import io

from ..errors import AllocationExists, ValidationError
from ..services import workshop_service as ws
from .base import Allocator, AllocationResult


class ManualAllocator(Allocator):

    name = "manual"

    def init(self, settings: dict, user: str = "system") -> AllocationResult:
        """settings: {"mode": "new", "authorid", "reviewerid"} or {"mode": "del", "assessmentid"}."""
        mode = (settings or {}).get("mode")
        if mode == "new":
            return self.add(settings.get("authorid"), settings.get("reviewerid"), user=user)
        if mode == "del":
            return self.remove(settings.get("assessmentid"), user=user)
        if mode == "upload":
            return self.upload(settings.get("content", ""), user=user)
        if mode == "clear":
            return self.clear_ungraded(user=user)
        result = AllocationResult(self.name)
        result.set_status(AllocationResult.STATUS_VOID)
        return result

    def add(self, authorid, reviewerid, user: str = "system") -> AllocationResult:
        result = AllocationResult(self.name)
        if not authorid or not reviewerid:
            raise ValidationError("authorid and reviewerid are required")
        submission = ws.get_submission_by_author(self.state, authorid)
        if submission is None:
            result.log(f"No submission by {authorid}", 'error')
            result.set_status(AllocationResult.STATUS_FAILED, f"No submission by {authorid}")
            return result
        try:
            ws.add_allocation(self.state, submission, reviewerid, user=user)
        except AllocationExists as e:
            result.log(e.message, 'info')
            result.counters["skipped"] += 1
            result.set_status(AllocationResult.STATUS_VOID, e.message)
            return result
        result.counters["allocated"] += 1
        result.log(f"{reviewerid} allocated to the submission of {authorid}")
        result.set_status(AllocationResult.STATUS_EXECUTED)
        return result

    def remove(self, assessment_id, user: str = "system") -> AllocationResult:
        result = AllocationResult(self.name)
        assessment = ws.get_assessment(self.state, assessment_id)
        submission = ws.get_submission(self.state, assessment["submissionid"])
        if assessment.get("grade") is not None:
            result.log(f"Assessment {assessment['id']} was already graded", 'info')
        ws.delete_assessment(self.state, assessment["id"], user=user)
        result.counters["removed"] += 1
        result.log(f"{assessment['reviewerid']} no longer reviews the submission of {submission['authorid']}")
        result.set_status(AllocationResult.STATUS_EXECUTED)
        return result

    def upload(self, content: str, user: str = "system") -> AllocationResult:
        """Allocate from CSV lines "author,reviewer,reviewer,..."."""
        result = AllocationResult(self.name)
        failed = False
        allowself = self.state["workshop"].get("useselfassessment")
        for line in csv.reader(io.StringIO(content)):
            line = [cell.strip() for cell in line]
            if len(line) < 2 or not line[0]:
                continue
            authorid, reviewers = line[0], line[1:]
            if ws.get_participant(self.state, authorid) is None:
                result.log(f"No user {authorid}", 'error')
                failed = True
                continue
            submission = ws.get_submission_by_author(self.state, authorid)
            if submission is None:
                result.log(f"No submission for {authorid}", 'error')
                failed = True
                continue
            for reviewerid in reviewers:
                if not reviewerid:
                    continue
                if ws.get_participant(self.state, reviewerid) is None:
                    result.log(f"No user {reviewerid}", 'error')
                    failed = True
                elif not allowself and reviewerid == authorid:
                    result.log(f"Self-assessment is disabled, {authorid} was not allocated to their own submission",
                               'info')
                    result.counters["skipped"] += 1
                else:
                    try:
                        ws.add_allocation(self.state, submission, reviewerid, user=user)
                        result.counters["allocated"] += 1
                    except AllocationExists:
                        result.counters["skipped"] += 1
        result.set_status(AllocationResult.STATUS_FAILED if failed else AllocationResult.STATUS_EXECUTED)
        return result

    def clear_ungraded(self, user: str = "system") -> AllocationResult:
        """Remove every allocation that has not been assessed yet."""
        result = AllocationResult(self.name)
        ids = [a["id"] for a in ws.get_all_assessments(self.state) if a.get("grade") is None]
        ws.delete_assessment(self.state, ids, user=user)
        result.counters["removed"] = len(ids)
        result.log(f"Removed {len(ids)} ungraded allocations")
        result.set_status(AllocationResult.STATUS_EXECUTED)
        return result
