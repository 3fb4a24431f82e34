import enum


class SystemRole(str, enum.Enum):
    admin = "admin"
    user = "user"


class ProjectRole(str, enum.Enum):
    OWNER = "OWNER"
    MANAGER = "MANAGER"
    MEMBER = "MEMBER"
    VIEWER = "VIEWER"


class ProjectPermission(str, enum.Enum):
    view_transactions = "view_transactions"
    create_income = "create_income"
    create_expense = "create_expense"
    approve_transactions = "approve_transactions"
    manage_accounts = "manage_accounts"
    manage_members = "manage_members"
    view_reports = "view_reports"
    edit_project = "edit_project"


class ProjectStatus(str, enum.Enum):
    ACTIVE = "ACTIVE"
    COMPLETED = "COMPLETED"
    PAUSED = "PAUSED"


class Currency(str, enum.Enum):
    VND = "VND"
    USD = "USD"
    KHR = "KHR"
    TRY = "TRY"


class AccountType(str, enum.Enum):
    BANK = "BANK"
    CASH = "CASH"
    E_WALLET = "E-WALLET"


class TransactionType(str, enum.Enum):
    IN = "IN"
    OUT = "OUT"


class TransactionStatus(str, enum.Enum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


class FixedCostCycle(str, enum.Enum):
    MONTHLY = "MONTHLY"
    QUARTERLY = "QUARTERLY"
    YEARLY = "YEARLY"


class FixedCostStatus(str, enum.Enum):
    ON = "ON"
    OFF = "OFF"
