"""Ledger REST API — admin-only, read-only (the ledger has no write endpoint)."""

from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.im_common.database import get_db_session
from src.im_common.enums import ActorRole
from src.im_common.response import ApiResponse, success_response
from src.im_gateway.auth.dependencies import Actor, require_roles
from src.im_ledger.application.schemas import TransactionItem, TransactionListResponse
from src.im_ledger.application.service import LedgerWriter

router = APIRouter(prefix="/transactions", tags=["transactions"])

_ledger = LedgerWriter()


@router.get("")
async def list_transactions(
    actor: Annotated[Actor, Depends(require_roles(ActorRole.ADMIN.value))],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
    type: str | None = Query(None, description="Filter by transaction type, e.g. order_cancelled"),
    limit: int = Query(100, ge=1, le=500, description="Most recent N records"),
) -> ApiResponse:
    records = await _ledger.list_recent(db, limit, type)
    data = TransactionListResponse(items=[TransactionItem.from_domain(r) for r in records])
    return success_response(data.model_dump(), request)
