"""ORM models package."""
from .activity import SYSTEM_ACTOR_ID, SystemMetric, UserActivityLog
from .base import Base
from .chat import Conversation, Message, UsageTracking
from .job import AnalysisJob, AnalysisResult, JobStatus
from .user import School, User, UserProfile

__all__ = [
    "AnalysisJob",
    "AnalysisResult",
    "Base",
    "Conversation",
    "JobStatus",
    "Message",
    "School",
    "SYSTEM_ACTOR_ID",
    "SystemMetric",
    "UsageTracking",
    "User",
    "UserActivityLog",
    "UserProfile",
]
