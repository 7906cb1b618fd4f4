# Export all cleaned/core models for easy imports
from .base import Base
from .cleaned import (
    CleanedCollege,
    CleanedMajor,
    CleanedAdmissionScore,
    CleanedCampusLife,
    CleanedEnrollmentPlan,
)
from .core_college import CoreCollege
from .core_admission_score import CoreAdmissionScore
from .core_campus_life import CoreCampusLife
from .core_major import CoreMajor
from .sync_log import SyncLog

__all__ = [
    "Base",
    "CleanedCollege",
    "CleanedMajor",
    "CleanedAdmissionScore",
    "CleanedCampusLife",
    "CleanedEnrollmentPlan",
    "CoreCollege",
    "CoreAdmissionScore",
    "CoreCampusLife",
    "CoreMajor",
    "SyncLog",
]
