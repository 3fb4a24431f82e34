from app.models.account import Account
from app.models.activity import ActivityLog
from app.models.category import MasterCategory
from app.models.enums import (
    AccountType,
    Currency,
    FixedCostCycle,
    FixedCostStatus,
    ProjectPermission,
    ProjectRole,
    ProjectStatus,
    SystemRole,
    TransactionStatus,
    TransactionType,
)
from app.models.fixed_cost import FixedCost
from app.models.fund import Fund
from app.models.project import Project, ProjectMember
from app.models.transaction import Transaction
from app.models.user import User

__all__ = [
    "Account",
    "ActivityLog",
    "MasterCategory",
    "AccountType",
    "Currency",
    "FixedCostCycle",
    "FixedCostStatus",
    "ProjectPermission",
    "ProjectRole",
    "ProjectStatus",
    "SystemRole",
    "TransactionStatus",
    "TransactionType",
    "FixedCost",
    "Fund",
    "Project",
    "ProjectMember",
    "Transaction",
    "User",
]
