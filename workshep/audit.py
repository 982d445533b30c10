"""
Audit trail for Workshep.

Every state-changing operation (phase switches, allocations, aggregation,
flag resolution) is appended to a plain-text log so teachers can trace how
a grade came to be.
"""
import os
import logging
from datetime import datetime

from .config import AUDIT_LOG_FILE

logger = logging.getLogger(__name__)


def audit_log(action: str, details: str = "", user: str = "system"):
    """Append one entry to the audit log.

    Write failures are logged, not raised.
    """
    try:
        timestamp = datetime.now().isoformat()
        log_entry = f"{timestamp} | {user} | {action} | {details}\n"

        with open(AUDIT_LOG_FILE, 'a') as f:
            f.write(log_entry)
    except OSError as e:
        logger.error("Audit log error: %s", e)


def get_audit_logs(limit: int = 100):
    """Retrieve recent audit log entries, newest first."""
    if not os.path.exists(AUDIT_LOG_FILE):
        return []

    try:
        with open(AUDIT_LOG_FILE, 'r') as f:
            lines = f.readlines()
    except OSError as e:
        logger.error("Error reading audit logs: %s", e)
        return []

    recent = lines[-limit:] if len(lines) > limit else lines
    logs = []
    for line in recent:
        parts = line.strip().split(' | ')
        if len(parts) >= 4:
            logs.append({
                'timestamp': parts[0],
                'user': parts[1],
                'action': parts[2],
                'details': ' | '.join(parts[3:])
            })
    return logs[::-1]
