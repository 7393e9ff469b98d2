# src/im_order/api/router.py
"""Order REST API — creation, reads, status transitions, cancellation, refunds,
and installer job claims.

Every endpoint requires a Bearer token. Customers see and cancel only their
own orders. Installers see unclaimed pending jobs, but advance and cancel
only orders assigned to them.
"""
from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.im_common.database import get_db_session
from src.im_common.enums import ActorRole, OrderStatus
from src.im_common.errors import ForbiddenError, InvalidTransitionError, OrderNotFoundError
from src.im_common.response import ApiResponse, success_response
from src.im_gateway.auth.dependencies import Actor, get_current_actor, require_roles
from src.im_history.application.hooks import CustomerHistoryHook
from src.im_history.application.service import HistoryWriter
from src.im_ledger.application.schemas import TransactionItem, TransactionListResponse
from src.im_order.application.cancellation import CancellationCoordinator
from src.im_order.application.jobs import JobAssignment
from src.im_order.application.lifecycle import OrderLifecycleManager
from src.im_order.application.schemas import (
    AcceptJobRequest,
    CancelOrderRequest,
    ConfirmRefundRequest,
    CreateOrderRequest,
    OrderResponse,
    TransitionRequest,
    TransitionResponse,
)
from src.im_order.application.service import OrderApplicationService
from src.im_order.domain.state_machine import parse_status

router = APIRouter(prefix="/orders", tags=["orders"])

_history = HistoryWriter()
_lifecycle = OrderLifecycleManager(hooks=[CustomerHistoryHook(_history)])
_coordinator = CancellationCoordinator(_lifecycle)
_jobs = JobAssignment(_lifecycle)
_service = OrderApplicationService(ledger=_lifecycle.ledger, history=_history)


def _ensure_visible(order: OrderResponse, actor: Actor, *, open_jobs: bool = True) -> None:
    if actor.role == ActorRole.ADMIN.value:
        return
    if actor.role == ActorRole.CUSTOMER.value and order.customer_id == actor.id:
        return
    if actor.role == ActorRole.INSTALLER.value:
        if order.technician_id == actor.id:
            return
        if open_jobs and order.status == OrderStatus.PENDING.value and order.technician_id is None:
            return
    # Do not leak the existence of other customers' orders
    raise OrderNotFoundError(order.id)


@router.post("", status_code=201)
async def create_order(
    body: CreateOrderRequest,
    actor: Annotated[Actor, Depends(require_roles(ActorRole.CUSTOMER.value))],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.create_order(db, body, actor.id, actor.role)
    return success_response(data.model_dump(), request)


@router.get("")
async def list_orders(
    actor: Annotated[Actor, Depends(require_roles(ActorRole.ADMIN.value))],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
    cursor: str | None = Query(None, description="Pagination cursor (opaque Base64)"),
    limit: int = Query(20, ge=1, le=100, description="Items per page"),
) -> ApiResponse:
    data = await _service.list_orders(db, cursor, limit)
    return success_response(data.model_dump(), request)


@router.get("/mine")
async def list_my_orders(
    actor: Annotated[Actor, Depends(require_roles(ActorRole.CUSTOMER.value))],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
    limit: int = Query(50, ge=1, le=200),
) -> ApiResponse:
    orders = await _service.list_customer_orders(db, actor.id, limit)
    return success_response([o.model_dump() for o in orders], request)


@router.get("/jobs/available")
async def list_available_jobs(
    actor: Annotated[Actor, Depends(require_roles(ActorRole.INSTALLER.value))],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
    limit: int = Query(50, ge=1, le=200),
) -> ApiResponse:
    orders = await _service.list_available_jobs(db, actor.id, limit)
    return success_response([o.model_dump() for o in orders], request)


@router.get("/jobs")
async def list_my_jobs(
    actor: Annotated[Actor, Depends(require_roles(ActorRole.INSTALLER.value))],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
    status: list[OrderStatus] | None = Query(None, description="Repeat to filter by several"),
    limit: int = Query(100, ge=1, le=500),
) -> ApiResponse:
    orders = await _service.list_installer_jobs(db, actor.id, status, limit)
    return success_response([o.model_dump() for o in orders], request)


@router.get("/{order_id}")
async def get_order(
    order_id: str,
    actor: Annotated[Actor, Depends(get_current_actor)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    order = await _service.get_order(db, order_id)
    _ensure_visible(order, actor)
    return success_response(order.model_dump(), request)


@router.post("/{order_id}/accept")
async def accept_job(
    order_id: str,
    actor: Annotated[Actor, Depends(require_roles(ActorRole.INSTALLER.value))],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
    body: AcceptJobRequest | None = None,
) -> ApiResponse:
    _ensure_visible(await _service.get_order(db, order_id), actor, open_jobs=False)
    result = await _jobs.accept_job(
        db, order_id, actor.id, body.installer_name if body else None
    )
    return success_response(TransitionResponse.from_result(result).model_dump(), request)


@router.post("/{order_id}/status")
async def transition_status(
    order_id: str,
    body: TransitionRequest,
    actor: Annotated[
        Actor, Depends(require_roles(ActorRole.ADMIN.value, ActorRole.INSTALLER.value))
    ],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    status = parse_status(body.status)
    order = await _service.get_order(db, order_id)
    _ensure_visible(order, actor, open_jobs=False)
    if status is OrderStatus.CANCELLED:
        # Cancelling must record the cancellation block and refund request
        result = await _coordinator.cancel_order(
            db,
            order_id,
            body.note or f"Cancelled by {actor.role}",
            actor.role,
            actor.id,
            actor.role,
        )
    elif status is OrderStatus.REFUNDED:
        # Refunds settle only through /refund/confirm, which records the provider id
        raise InvalidTransitionError(order_id, order.status, status.value)
    else:
        result = await _lifecycle.transition_status(
            db, order_id, status, body.note, actor.id, actor.role
        )
    return success_response(TransitionResponse.from_result(result).model_dump(), request)


@router.post("/{order_id}/cancel")
async def cancel_order(
    order_id: str,
    body: CancelOrderRequest,
    actor: Annotated[Actor, Depends(get_current_actor)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    if not actor.is_admin:
        _ensure_visible(await _service.get_order(db, order_id), actor, open_jobs=False)
    cancelled_by = body.cancelled_by or actor.role
    if not actor.is_admin and cancelled_by != actor.role:
        raise ForbiddenError(actor.role)
    result = await _coordinator.cancel_order(
        db, order_id, body.reason, cancelled_by, actor.id, actor.role
    )
    return success_response(TransitionResponse.from_result(result).model_dump(), request)


@router.post("/{order_id}/refund/confirm")
async def confirm_refund(
    order_id: str,
    body: ConfirmRefundRequest,
    actor: Annotated[Actor, Depends(require_roles(ActorRole.ADMIN.value))],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    result = await _coordinator.confirm_refund(
        db, order_id, body.refund_transaction_id, actor.id, actor.role
    )
    return success_response(TransitionResponse.from_result(result).model_dump(), request)


@router.get("/{order_id}/transactions")
async def list_order_transactions(
    order_id: str,
    actor: Annotated[Actor, Depends(get_current_actor)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    _ensure_visible(await _service.get_order(db, order_id), actor, open_jobs=False)
    records = await _lifecycle.ledger.list_by_order(db, order_id)
    data = TransactionListResponse(items=[TransactionItem.from_domain(r) for r in records])
    return success_response(data.model_dump(), request)
