from smartbudget.api.routes.auth import router as auth_router
from smartbudget.api.routes.expenses import router as expenses_router
from smartbudget.api.routes.reminders import router as reminders_router
from smartbudget.api.routes.settlements import router as settlements_router

__all__ = ["auth_router", "expenses_router", "reminders_router", "settlements_router"]
