"""Settlement routes; every handler is scoped to the authenticated user."""

from fastapi import APIRouter, Depends, status

from smartbudget.api import deps
from smartbudget.schemas.common import Message
from smartbudget.schemas.settlement import SettlementCreate, SettlementOut, SettlementSummary, SettlementUpdate
from smartbudget.services.settlements import SettlementService

router = APIRouter(prefix="/api/settlements", tags=["settlements"])


@router.get("", response_model=list[SettlementOut])
async def list_settlements(service: SettlementService = Depends(deps.get_settlement_service)):
    return await service.list_all()


@router.post("", response_model=SettlementOut, status_code=status.HTTP_201_CREATED)
async def create_settlement(
    payload: SettlementCreate,
    service: SettlementService = Depends(deps.get_settlement_service),
):
    return await service.create(payload)


@router.get("/summary", response_model=SettlementSummary)
async def settlement_summary(service: SettlementService = Depends(deps.get_settlement_service)):
    return await service.summary()


@router.put("/{settlement_id}", response_model=SettlementOut)
async def update_settlement(
    settlement_id: int,
    payload: SettlementUpdate,
    service: SettlementService = Depends(deps.get_settlement_service),
):
    return await service.update(settlement_id, payload)


@router.delete("/{settlement_id}", response_model=Message)
async def delete_settlement(settlement_id: int, service: SettlementService = Depends(deps.get_settlement_service)):
    await service.delete(settlement_id)
    return Message(message="Settlement deleted successfully.")
