from .admin import User
from .client import Client
from .project import Project, ProjectResource, ThirdPartyResource
from .rates import CostRate, CostRateHistory, ExchangeRate
from .audit import AuditLog
