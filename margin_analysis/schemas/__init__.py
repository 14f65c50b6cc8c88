from .auth import *
from .client import ClientCreate, ClientUpdate, ClientResponse
from .project import (
    ProjectResourceCreate,
    ThirdPartyResourceCreate,
    ProjectCreate,
    ProjectUpdate,
    ProjectResourceResponse,
    ThirdPartyResourceResponse,
    HoursValidationResponse,
    MetricsVariance,
    ProjectListResponse,
    ProjectResponse,
    ProjectSaveResponse,
    DashboardStats,
)
from .rates import *
