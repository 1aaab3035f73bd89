"""Ledger API router."""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, status

from tutorhub.modules.identity.service import get_current_user
from tutorhub.modules.ledger.schemas import LedgerKey, LedgerRead, PaymentIntervalUpdate, PaymentRead
from tutorhub.modules.ledger.service import LedgerAccumulator, get_ledger_accumulator
from tutorhub.shared.pagination import Page, build_page, get_pagination_params

router = APIRouter(prefix="/ledgers", tags=["ledgers"])


@router.get("/my", response_model=Page[LedgerRead])
async def list_my_ledgers(
    pagination=Depends(get_pagination_params),
    service: LedgerAccumulator = Depends(get_ledger_accumulator),
    current_user=Depends(get_current_user),
) -> Page[LedgerRead]:
    """List lecture hour ledgers of current user with payment standing."""
    items, total = await service.list_ledgers(current_user, pagination)
    return build_page([service.to_read(item) for item in items], total, pagination)


@router.get("/{ledger_id}", response_model=LedgerRead)
async def get_ledger(
    ledger_id: UUID,
    service: LedgerAccumulator = Depends(get_ledger_accumulator),
    current_user=Depends(get_current_user),
) -> LedgerRead:
    """Return one ledger."""
    ledger = await service.get_ledger(ledger_id, current_user)
    return service.to_read(ledger)


@router.post("/settlement", response_model=PaymentRead, status_code=status.HTTP_201_CREATED)
async def settle_ledger(
    payload: LedgerKey,
    service: LedgerAccumulator = Depends(get_ledger_accumulator),
    current_user=Depends(get_current_user),
) -> PaymentRead:
    """Settle all unpaid hours into a paid payment."""
    payment = await service.settle(payload, current_user)
    return PaymentRead.model_validate(payment)


@router.post("/payment-requests", response_model=PaymentRead, status_code=status.HTTP_201_CREATED)
async def request_payment(
    payload: LedgerKey,
    service: LedgerAccumulator = Depends(get_ledger_accumulator),
    current_user=Depends(get_current_user),
) -> PaymentRead:
    """Issue a due payment for the ledger's unpaid hours."""
    payment = await service.request_payment(payload, current_user)
    return PaymentRead.model_validate(payment)


@router.patch("/{ledger_id}/payment-interval", response_model=LedgerRead)
async def update_payment_interval(
    ledger_id: UUID,
    payload: PaymentIntervalUpdate,
    service: LedgerAccumulator = Depends(get_ledger_accumulator),
    current_user=Depends(get_current_user),
) -> LedgerRead:
    """Change the ledger's payment interval."""
    ledger = await service.update_payment_interval(ledger_id, payload.payment_interval_hours, current_user)
    return service.to_read(ledger)


@router.post("/payments/{payment_id}/reminders", response_model=PaymentRead)
async def send_payment_reminder(
    payment_id: UUID,
    service: LedgerAccumulator = Depends(get_ledger_accumulator),
    current_user=Depends(get_current_user),
) -> PaymentRead:
    """Send a reminder for an open payment."""
    payment = await service.send_payment_reminder(payment_id, current_user)
    return PaymentRead.model_validate(payment)
