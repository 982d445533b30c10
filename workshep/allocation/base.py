"""Allocator interface and the result object every allocation run returns."""
import time
import logging

logger = logging.getLogger(__name__)


class AllocationResult:
    """Outcome of one allocator run, including a log for the teacher."""

    STATUS_VOID = 'void'
    STATUS_CONFIGURED = 'configured'
    STATUS_EXECUTED = 'executed'
    STATUS_FAILED = 'failed'

    def __init__(self, allocator: str):
        self.allocator = allocator
        self.status = None
        self.message = None
        self.logs = []
        self.timestart = int(time.time())
        self.timeend = None
        self.counters = {"allocated": 0, "removed": 0, "skipped": 0}

    def set_status(self, status: str, message: str = None):
        self.status = status
        self.message = message
        self.timeend = int(time.time())

    def log(self, message: str, level: str = 'ok', indent: int = 0):
        self.logs.append({"message": message, "level": level, "indent": indent})
        logger.debug("[%s] %s", self.allocator, message)

    def to_dict(self) -> dict:
        return {
            "allocator": self.allocator,
            "status": self.status,
            "message": self.message,
            "logs": self.logs,
            "timestart": self.timestart,
            "timeend": self.timeend,
            "counters": dict(self.counters),
        }


class Allocator:
    """Assigns reviewers to submissions."""

    name = ""

    def __init__(self, state: dict):
        self.state = state

    def init(self, settings: dict, user: str = "system") -> AllocationResult:
        raise NotImplementedError
