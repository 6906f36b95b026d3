from .app_setting import AppSetting
from .classroom import Classroom
from .ledger_transaction import LedgerTransaction
from .stock import Stock
from .student_account import StudentAccount
from .student_holding import StudentHolding

__all__ = [
    "AppSetting",
    "Classroom",
    "LedgerTransaction",
    "Stock",
    "StudentAccount",
    "StudentHolding",
]
