from smartbudget.db.models.expense import Expense, ExpenseCategory
from smartbudget.db.models.otp import OneTimeCode
from smartbudget.db.models.reminder import Reminder
from smartbudget.db.models.settlement import Settlement
from smartbudget.db.models.user import User

__all__ = [
    "Expense",
    "ExpenseCategory",
    "OneTimeCode",
    "Reminder",
    "Settlement",
    "User",
]
