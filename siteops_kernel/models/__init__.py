"""ORM models.  Importing this package registers every table on ``Base.metadata``."""

from siteops_kernel.models.approval import ApprovalRequestModel
from siteops_kernel.models.org_unit import OrgUnitModel

__all__ = [
    "ApprovalRequestModel",
    "OrgUnitModel",
]
