"""
Workshop State Storage
======================
Each workshop is persisted as a single JSON document under
<data dir>/workshops/<id>.json holding every table the activity needs:

- workshop: the activity settings (phase, max grades, plugins in use)
- participants: enrolled users with their role and group
- submissions / assessments / grades: the peer-assessment records
- aggregations: grades for assessment per reviewer
- form: the grading strategy definition
- evaluation_settings / calibration_settings / allocation_settings
- calibration_scores / user_examples / gradebook
"""

import os
import json
import tempfile
import threading
import logging
from contextlib import contextmanager

from .config import DATA_DIR
from .errors import NotFoundError

logger = logging.getLogger(__name__)

WORKSHOPS_DIR = os.path.join(DATA_DIR, "workshops")

TABLES = ("participants", "submissions", "assessments", "grades")

_lock = threading.RLock()


@contextmanager
def locked():
    """Serialize read-modify-write cycles on workshop files."""
    with _lock:
        yield


def ensure_workshops_dir():
    """Create the workshops directory if it doesn't exist."""
    os.makedirs(WORKSHOPS_DIR, exist_ok=True)


def get_workshop_path(workshop_id) -> str:
    ensure_workshops_dir()
    return os.path.join(WORKSHOPS_DIR, f"{int(workshop_id)}.json")


def empty_state(workshop: dict) -> dict:
    """Return a state document with all tables empty."""
    return {
        "workshop": workshop,
        "participants": [],
        "submissions": [],
        "assessments": [],
        "grades": [],
        "aggregations": {},
        "form": {},
        "evaluation_settings": {},
        "calibration_settings": {},
        "calibration_scores": {},
        "user_examples": {},
        "allocation_settings": {},
        "gradebook": {},
        "counters": {},
    }


def load_workshop(workshop_id) -> dict:
    """Load the complete state of one workshop."""
    try:
        path = get_workshop_path(workshop_id)
    except (TypeError, ValueError):
        raise NotFoundError(f"Workshop not found: {workshop_id}")

    if not os.path.exists(path):
        raise NotFoundError(f"Workshop not found: {workshop_id}")

    with open(path, 'r') as f:
        return json.load(f)


def save_workshop(state: dict):
    """Write the state atomically so a crash never leaves half a file."""
    path = get_workshop_path(state["workshop"]["id"])
    with _lock:
        fd, tmp_path = tempfile.mkstemp(dir=WORKSHOPS_DIR, suffix=".tmp")
        try:
            with os.fdopen(fd, 'w') as f:
                json.dump(state, f, indent=2)
            os.replace(tmp_path, path)
        except Exception:
            if os.path.exists(tmp_path):
                os.remove(tmp_path)
            raise


def list_workshop_ids() -> list:
    ensure_workshops_dir()
    ids = []
    for f in os.listdir(WORKSHOPS_DIR):
        if f.endswith('.json'):
            try:
                ids.append(int(f[:-len('.json')]))
            except ValueError:
                logger.warning("Ignoring unexpected file in workshops dir: %s", f)
    return sorted(ids)


def list_workshops() -> list:
    """Summaries of all stored workshops."""
    workshops = []
    for workshop_id in list_workshop_ids():
        try:
            state = load_workshop(workshop_id)
        except (json.JSONDecodeError, OSError) as e:
            logger.error("Failed to load workshop %s: %s", workshop_id, e)
            continue
        w = state["workshop"]
        workshops.append({"id": w["id"], "name": w.get("name", ""), "phase": w.get("phase")})
    return workshops


def create_workshop_state(workshop: dict) -> dict:
    """Allocate an id, build an empty state around the settings and save it."""
    with _lock:
        ids = list_workshop_ids()
        workshop = dict(workshop)
        workshop["id"] = (ids[-1] + 1) if ids else 1
        state = empty_state(workshop)
        save_workshop(state)
    return state


def delete_workshop(workshop_id):
    path = get_workshop_path(workshop_id)
    if not os.path.exists(path):
        raise NotFoundError(f"Workshop not found: {workshop_id}")
    os.remove(path)


def next_id(state: dict, table: str) -> int:
    """Next record id for the given table of this workshop."""
    counters = state.setdefault("counters", {})
    counters[table] = counters.get(table, 0) + 1
    return counters[table]


@contextmanager
def editing(workshop_id):
    """Load a workshop, yield its state and save it unless the block raised."""
    with _lock:
        state = load_workshop(workshop_id)
        yield state
        save_workshop(state)
