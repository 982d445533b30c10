"""
Configuration management for the Workshep backend.
"""
import os
from pathlib import Path
from dotenv import load_dotenv

# Load environment variables
load_dotenv()

# Base paths
BASE_DIR = Path(__file__).parent.parent
PACKAGE_DIR = Path(__file__).parent

# User data directories
HOME_DIR = Path.home()
DATA_DIR = os.getenv("WORKSHEP_DATA_DIR", str(HOME_DIR / ".workshep_data"))
AUDIT_LOG_FILE = os.getenv("WORKSHEP_AUDIT_LOG", str(HOME_DIR / ".workshep_audit.log"))

# Authentication
JWT_SECRET = os.getenv("WORKSHEP_JWT_SECRET", "")
AUTH_DISABLED = os.getenv("WORKSHEP_AUTH_DISABLED", "").lower() in ("1", "true", "yes")
LOCAL_USER = os.getenv("WORKSHEP_LOCAL_USER", "admin")

# Server configuration
HOST = os.getenv("WORKSHEP_HOST", "0.0.0.0")
PORT = int(os.getenv("WORKSHEP_PORT", "3000"))
DEBUG = os.getenv("WORKSHEP_DEBUG", "").lower() in ("1", "true", "yes")

# Workshop defaults
DEFAULT_GRADE = 80.0            # max grade for submission
DEFAULT_GRADING_GRADE = 20.0    # max grade for assessment
DEFAULT_STRATEGY = "accumulative"
DEFAULT_EVALUATION = "best"
DEFAULT_CALIBRATION_METHOD = "examples"
DEFAULT_GRADE_DECIMALS = 0
MAX_ASSESSMENT_WEIGHT = 16


class Config:
    """Application configuration class.

    Paths are fixed at import time; only the workshop defaults can change.
    """

    MUTABLE = ("default_strategy", "default_evaluation", "default_grade", "default_grading_grade")

    def __init__(self):
        self.data_dir = DATA_DIR
        self.audit_log_file = AUDIT_LOG_FILE
        self.default_strategy = DEFAULT_STRATEGY
        self.default_evaluation = DEFAULT_EVALUATION
        self.default_grade = DEFAULT_GRADE
        self.default_grading_grade = DEFAULT_GRADING_GRADE

    def to_dict(self):
        return {
            "data_dir": self.data_dir,
            "audit_log_file": self.audit_log_file,
            "default_strategy": self.default_strategy,
            "default_evaluation": self.default_evaluation,
            "default_grade": self.default_grade,
            "default_grading_grade": self.default_grading_grade,
        }

    def update(self, data: dict):
        for key, value in data.items():
            if key in self.MUTABLE:
                setattr(self, key, value)


# Global config instance
config = Config()
