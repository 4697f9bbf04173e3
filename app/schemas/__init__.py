"""Schema package exports."""
from .alert import Alert, AlertCreate, AlertResolve, AlertSeverity, AlertStats, AlertStatus, AlertType
from .auth import AdminPrincipal, LoginRequest
from .conversation import ConversationBrief, ConversationDetail, ConversationRead, MessageRead
from .filters import (
    AlertFilters,
    ConversationFilters,
    JobFilters,
    MessageFilters,
    SchoolFilters,
    UserFilters,
)
from .job import JobBrief, JobDetail, JobRead, ResultRead
from .school import SchoolCreate, SchoolDetail, SchoolRead, SchoolUpdate
from .system import MetricCreate, MetricRead
from .user import ProfileRead, ProfileUpdate, TokenAdjust, UserRead, UserSummary, UserUpdate
