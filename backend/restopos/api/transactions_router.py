"""Payment records API (admin-only)."""

import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from restopos.api.schemas import TransactionResponse, UpdateTransactionRequest
from restopos.db.models import Order, Transaction, User, STATUS_PAID
from restopos.db.dependencies import get_sqlalchemy_session, require_admin
from restopos.db.report_queries import transaction_to_dict
from restopos.utils.money import to_cents

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/transactions", tags=["transactions"])


@router.get("", response_model=List[TransactionResponse])
async def list_transactions(
    limit: int = Query(100, ge=1, le=1000),
    offset: int = Query(0, ge=0),
    session: Session = Depends(get_sqlalchemy_session),
    admin: User = Depends(require_admin)
):
    """List payments, newest first."""
    try:
        transactions = session.execute(
            select(Transaction)
            .order_by(Transaction.created_at.desc(), Transaction.id.desc())
            .offset(offset)
            .limit(limit)
        ).scalars().all()
        return [transaction_to_dict(t) for t in transactions]
    finally:
        session.close()


@router.put("/{transaction_id}", response_model=TransactionResponse)
async def update_transaction(
    transaction_id: int,
    request: UpdateTransactionRequest,
    session: Session = Depends(get_sqlalchemy_session),
    admin: User = Depends(require_admin)
):
    """Correct the amount or payment method of a recorded payment."""
    try:
        transaction = session.get(Transaction, transaction_id)
        if not transaction:
            raise HTTPException(status_code=404, detail="transaction not found")
        if request.amount is not None:
            transaction.amount = to_cents(request.amount)
        if request.payment_method is not None:
            transaction.payment_method = request.payment_method
        session.commit()
        logger.info("Transaction %s corrected by %s", transaction_id, admin.username)
        return transaction_to_dict(transaction)
    finally:
        session.close()


@router.delete("/{transaction_id}")
async def delete_transaction(
    transaction_id: int,
    session: Session = Depends(get_sqlalchemy_session),
    admin: User = Depends(require_admin)
):
    """
    Delete a payment record.

    The last payment of a Paid order cannot be removed on its own; delete the
    order instead.
    """
    try:
        transaction = session.get(Transaction, transaction_id)
        if not transaction:
            raise HTTPException(status_code=404, detail="transaction not found")

        order = session.get(Order, transaction.order_id)
        remaining = session.execute(
            select(func.count(Transaction.id)).where(Transaction.order_id == transaction.order_id)
        ).scalar_one()
        if order is not None and order.status == STATUS_PAID and remaining <= 1:
            raise HTTPException(status_code=409, detail="Paid order would be left without a payment")

        session.delete(transaction)
        session.commit()
        return {"status": "ok"}
    finally:
        session.close()
