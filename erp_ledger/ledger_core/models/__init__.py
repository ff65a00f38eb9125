from .account import (Account, AccountType, NormalSide,
                      normal_side_for)
from .auditlog import AuditLog
from .banking import BankStatementLine
from .entitymembership import Company, EntityMembership, User
from .journal import JournalEntry, JournalLine, ReferenceKind
from .period import (FinancialMonth, MonthCloseSnapshot, MonthStatus,
                     month_bounds)
