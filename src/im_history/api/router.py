"""Customer history REST API — a customer's own feed, or any feed for admins."""

from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.im_common.database import get_db_session
from src.im_common.enums import ActorRole, HistoryRecordType
from src.im_common.response import ApiResponse, success_response
from src.im_gateway.auth.dependencies import Actor, require_roles
from src.im_history.application.schemas import HistoryItem, HistoryListResponse
from src.im_history.application.service import HistoryWriter

router = APIRouter(tags=["history"])

_history = HistoryWriter()


async def _history_response(
    db: AsyncSession,
    request: Request,
    customer_id: str,
    type_: HistoryRecordType | None,
    limit: int,
) -> ApiResponse:
    records = await _history.list_for_customer(
        db, customer_id, type_.value if type_ else None, limit
    )
    data = HistoryListResponse(
        customer_id=customer_id,
        items=[HistoryItem.from_domain(r) for r in records],
    )
    return success_response(data.model_dump(), request)


@router.get("/history")
async def my_history(
    actor: Annotated[Actor, Depends(require_roles(ActorRole.CUSTOMER.value))],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
    type: HistoryRecordType | None = Query(None),
    limit: int = Query(100, ge=1, le=500),
) -> ApiResponse:
    return await _history_response(db, request, actor.id, type, limit)


@router.get("/customers/{customer_id}/history")
async def customer_history(
    customer_id: str,
    actor: Annotated[Actor, Depends(require_roles(ActorRole.ADMIN.value))],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
    type: HistoryRecordType | None = Query(None),
    limit: int = Query(100, ge=1, le=500),
) -> ApiResponse:
    return await _history_response(db, request, customer_id, type, limit)
