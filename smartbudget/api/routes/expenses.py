"""Expense routes; every handler is scoped to the authenticated user."""

from datetime import datetime, timezone
from typing import Literal

from fastapi import APIRouter, Depends, Query, Response, status

from smartbudget.api import deps
from smartbudget.schemas.common import Message
from smartbudget.schemas.expense import ExpenseCreate, ExpenseOut, ExpenseStats, ExpenseUpdate
from smartbudget.services.expenses import ExpenseService

router = APIRouter(prefix="/api/expenses", tags=["expenses"])


@router.get("", response_model=list[ExpenseOut])
async def list_expenses(service: ExpenseService = Depends(deps.get_expense_service)):
    return await service.list_all()


@router.post("", response_model=ExpenseOut, status_code=status.HTTP_201_CREATED)
async def create_expense(payload: ExpenseCreate, service: ExpenseService = Depends(deps.get_expense_service)):
    return await service.create(payload)


@router.get("/stats", response_model=ExpenseStats)
async def expense_stats(service: ExpenseService = Depends(deps.get_expense_service)):
    return await service.stats()


@router.get("/export")
async def export_expenses(
    fmt: Literal["csv", "json"] = Query("csv", alias="format"),
    service: ExpenseService = Depends(deps.get_expense_service),
) -> Response:
    """Download every expense as a CSV or JSON attachment."""

    if fmt == "json":
        content, media_type = await service.export_json(), "application/json"
    else:
        content, media_type = await service.export_csv(), "text/csv"

    filename = f"expenses-{datetime.now(timezone.utc).date().isoformat()}.{fmt}"
    return Response(
        content=content,
        media_type=media_type,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.put("/{expense_id}", response_model=ExpenseOut)
async def update_expense(
    expense_id: int,
    payload: ExpenseUpdate,
    service: ExpenseService = Depends(deps.get_expense_service),
):
    return await service.update(expense_id, payload)


@router.delete("/{expense_id}", response_model=Message)
async def delete_expense(expense_id: int, service: ExpenseService = Depends(deps.get_expense_service)):
    await service.delete(expense_id)
    return Message(message="Expense deleted successfully.")
