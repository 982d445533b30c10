"""
Scheduled allocation: runs the random allocator once, automatically, after
the submission deadline. Also home of the periodic cron job.
"""
import time
import logging

from ..audit import audit_log
from .. import phases
from ..services import workshop_service as ws
from .base import Allocator, AllocationResult
from .random_allocator import RandomAllocator, clean_settings

logger = logging.getLogger(__name__)


class ScheduledAllocator(Allocator):

    name = "scheduled"

    def __init__(self, state: dict, rng=None):
        super().__init__(state)
        self.rng = rng

    @property
    def current(self):
        return self.state.setdefault("allocation_settings", {}).get(self.name)

    def init(self, settings: dict, user: str = "system") -> AllocationResult:
        """Store the settings. "enabled" switches it on, "reset" allows another run."""
        settings = dict(settings or {})
        enabled = bool(settings.pop("enabled", False))
        reset = bool(settings.pop("reset", False))
        result = AllocationResult(self.name)

        record = dict(self.current or {
            "timeallocated": None, "resultstatus": None, "resultmessage": None, "resultlog": None,
        })
        record.update({
            "enabled": enabled,
            "submissionend": self.state["workshop"].get("submissionend"),
            "settings": clean_settings(settings),
        })
        if reset:
            record.update({"timeallocated": None, "resultstatus": None, "resultmessage": None, "resultlog": None})
        self.state["allocation_settings"][self.name] = record

        result.log(str(record["settings"]), 'debug')
        result.set_status(AllocationResult.STATUS_CONFIGURED,
                          "Scheduled allocation enabled" if enabled else "Scheduled allocation disabled")
        return result

    def execute(self, now=None, user: str = "system") -> AllocationResult:
        """Run the stored random allocation if its time has come."""
        now = int(time.time()) if now is None else int(now)
        workshop = self.state["workshop"]
        result = AllocationResult(self.name)

        if workshop["phase"] != phases.PHASE_SUBMISSION:
            result.set_status(AllocationResult.STATUS_FAILED, "The workshop is not in the submission phase")
            return result
        if not workshop.get("submissionend"):
            result.set_status(AllocationResult.STATUS_FAILED, "No submissions deadline set")
            return result
        if workshop["submissionend"] > now:
            result.set_status(AllocationResult.STATUS_VOID, "The submissions deadline has not passed yet")
            return result

        current = self.current
        if current is None:
            result.set_status(AllocationResult.STATUS_FAILED, "Scheduled allocation is not configured")
            return result
        if not current.get("enabled"):
            result.set_status(AllocationResult.STATUS_VOID, "Scheduled allocation disabled")
            return result
        if current.get("timeallocated") is not None and current["timeallocated"] >= workshop["submissionend"]:
            result.set_status(AllocationResult.STATUS_VOID, "Scheduled allocation already executed")
            return result

        RandomAllocator(self.state, rng=self.rng).execute(clean_settings(current["settings"]), result, user=user)

        current.update({
            "timeallocated": now,
            "resultstatus": result.status,
            "resultmessage": result.message,
            "resultlog": result.logs,
        })
        return result


def cron(state: dict, now=None, user: str = "system", rng=None) -> dict:
    """Periodic maintenance: scheduled allocation, then the automatic phase switch."""
    now = int(time.time()) if now is None else int(now)
    workshop = state["workshop"]
    report = {"allocation": None, "phase_switched": False}

    current = state.get("allocation_settings", {}).get(ScheduledAllocator.name)
    if current and current.get("enabled"):
        result = ScheduledAllocator(state, rng=rng).execute(now=now, user=user)
        report["allocation"] = result.to_dict()

    if (workshop["phase"] == phases.PHASE_SUBMISSION and workshop.get("phaseswitchassessment")
            and workshop.get("submissionend") and workshop["submissionend"] < now):
        ws.switch_phase(state, phases.PHASE_ASSESSMENT, user=user)
        # not again if the teacher goes back to the submission phase
        workshop["phaseswitchassessment"] = False
        report["phase_switched"] = True
        logger.info("Workshop %s switched to the assessment phase automatically", workshop["id"])
        audit_log("PHASE_AUTO_SWITCHED", f"workshop={workshop['id']}", user)
    return report
