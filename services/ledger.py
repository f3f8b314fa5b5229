# ================================================================
# services/ledger.py: bid-token balance store
# ================================================================
"""
Every balance mutation is a single conditional UPDATE against the user row
plus an append-only ledger entry. Debits never read-modify-write: the
``bid_tokens >= amount`` guard lives in the WHERE clause, and the table's
CHECK constraint backs it up.

``debit_tokens`` and ``credit_tokens`` do not commit; the caller owns the
transaction so a debit can be committed together with the bid it pays for.
"""
from typing import List, Optional
import logging

from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, select

from core.errors import InsufficientTokens, NotFound, ValidationFailed
from models.models import LedgerReason, TokenLedgerEntry, User

logger = logging.getLogger(__name__)


def _require_positive(amount: int) -> None:
    if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
        raise ValidationFailed("Token amount must be a positive whole number.", context={"amount": amount})


def get_balance(session: Session, account_id: int) -> int:
    """Read the balance straight from the store (bypasses the identity map)."""
    balance = session.exec(select(User.bid_tokens).where(User.id == account_id)).one_or_none()
    if balance is None:
        raise NotFound("Account not found", context={"account_id": account_id})
    return balance


def _append_entry(
    session: Session,
    account_id: int,
    delta: int,
    balance_after: int,
    reason: str,
    reference: Optional[str],
    note: Optional[str] = None,
) -> TokenLedgerEntry:
    entry = TokenLedgerEntry(
        account_id=account_id,
        delta=delta,
        balance_after=balance_after,
        reason=reason,
        reference=reference,
        note=note,
    )
    session.add(entry)
    return entry


def debit_tokens(
    session: Session,
    account_id: int,
    amount: int,
    reason: str = LedgerReason.BID.value,
    reference: Optional[str] = None,
) -> int:
    """
    Atomically take ``amount`` tokens from the account.

    Returns the balance after the debit. Raises InsufficientTokens when the
    balance is below ``amount`` (nothing is written) and NotFound for an
    unknown account.
    """
    _require_positive(amount)

    result = session.exec(
        update(User)
        .where(User.id == account_id, User.bid_tokens >= amount)
        .values(bid_tokens=User.bid_tokens - amount)
    )
    if result.rowcount == 0:
        balance = get_balance(session, account_id)
        logger.info(f"❌ Debit refused for account {account_id}: balance={balance}, required={amount}")
        raise InsufficientTokens(required=amount, balance=balance)

    balance_after = get_balance(session, account_id)
    _append_entry(session, account_id, -amount, balance_after, reason, reference)
    logger.info(f"💰 Debited {amount} tokens from account {account_id} ({reason}), balance={balance_after}")
    return balance_after


def credit_tokens(
    session: Session,
    account_id: int,
    amount: int,
    reason: str,
    reference: Optional[str] = None,
    note: Optional[str] = None,
) -> int:
    """Atomically add ``amount`` tokens. Returns the balance after the credit."""
    _require_positive(amount)

    result = session.exec(
        update(User)
        .where(User.id == account_id)
        .values(bid_tokens=User.bid_tokens + amount)
    )
    if result.rowcount == 0:
        raise NotFound("Account not found", context={"account_id": account_id})

    balance_after = get_balance(session, account_id)
    _append_entry(session, account_id, amount, balance_after, reason, reference, note)
    logger.info(f"💰 Credited {amount} tokens to account {account_id} ({reason}), balance={balance_after}")
    return balance_after


def grant_tokens(
    session: Session,
    account_id: int,
    amount: int,
    granted_by: Optional[int] = None,
    note: Optional[str] = None,
) -> int:
    """Administrative grant, committed on its own."""
    reference = f"admin:{granted_by}" if granted_by is not None else "admin"
    try:
        balance_after = credit_tokens(
            session,
            account_id,
            amount,
            reason=LedgerReason.GRANT.value,
            reference=reference,
            note=note,
        )
        session.commit()
    except SQLAlchemyError as e:
        session.rollback()
        logger.error(f"❌ Token grant failed for account {account_id}: {e}")
        raise
    except Exception:
        session.rollback()
        raise
    return balance_after


def list_ledger_entries(session: Session, account_id: int, limit: int = 50) -> List[TokenLedgerEntry]:
    statement = (
        select(TokenLedgerEntry)
        .where(TokenLedgerEntry.account_id == account_id)
        .order_by(TokenLedgerEntry.created_at.desc(), TokenLedgerEntry.id.desc())
        .limit(limit)
    )
    return list(session.exec(statement).all())
