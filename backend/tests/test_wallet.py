"""
Tests for the wallet: top-ups, conditional debits and ledger consistency.
"""

import pytest
from httpx import AsyncClient
from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError

from seatbook.core.exceptions import InsufficientFundsError, InvalidInputError
from seatbook.models import LedgerEntry, LedgerKind, LedgerStatus, Wallet
from seatbook.services import wallet_service

from helpers import balance_of, fund


@pytest.mark.asyncio
async def test_top_up_creates_wallet_and_credit(client: AsyncClient, headers):
    response = await client.post("/api/v1/wallet/top-up", json={"amount": 500}, headers=headers.student)
    assert response.status_code == 200
    data = response.json()
    assert data["wallet"]["balance"] == 500
    assert data["wallet"]["currency"] == "coin"
    assert data["transaction"]["kind"] == "credit"
    assert data["transaction"]["status"] == "completed"
    assert data["transaction"]["description"] == "Money added to wallet"

    wallet = await client.get("/api/v1/wallet", headers=headers.student)
    assert wallet.json()["balance"] == 500


@pytest.mark.asyncio
async def test_top_up_rejects_non_positive_amount(client: AsyncClient, headers):
    response = await client.post("/api/v1/wallet/top-up", json={"amount": 0}, headers=headers.student)
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_wallet_not_found_before_first_top_up(client: AsyncClient, headers):
    response = await client.get("/api/v1/wallet", headers=headers.student)
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_transactions_newest_first(client: AsyncClient, headers):
    await client.post("/api/v1/wallet/top-up", json={"amount": 100}, headers=headers.student)
    await client.post(
        "/api/v1/wallet/top-up", json={"amount": 50, "description": "Second"}, headers=headers.student
    )

    response = await client.get("/api/v1/wallet/transactions", headers=headers.student)
    assert response.status_code == 200
    entries = response.json()
    assert [entry["amount"] for entry in entries] == [50, 100]
    assert entries[0]["description"] == "Second"
    assert entries[0]["booking_ids"] == []


@pytest.mark.asyncio
async def test_debit_refused_when_balance_short(db_session, users):
    await fund(db_session, users.student, 30)

    with pytest.raises(InsufficientFundsError) as exc_info:
        await wallet_service.debit(db_session, users.student, 50, "too much")
    await db_session.rollback()

    assert exc_info.value.details == {"required": 50, "available": 30}
    assert await balance_of(db_session, users.student) == 30


@pytest.mark.asyncio
async def test_debit_leaves_pending_entry_until_completed(db_session, users):
    await fund(db_session, users.student, 100)

    wallet, entry = await wallet_service.debit(db_session, users.student, 40, "seat")
    assert entry.kind == LedgerKind.DEBIT
    assert entry.status == LedgerStatus.PENDING
    assert wallet.balance == 60

    wallet_service.complete_entry(entry)
    await db_session.commit()
    assert await wallet_service.ledger_balance(db_session, wallet.id) == 60


@pytest.mark.asyncio
async def test_balance_matches_ledger_after_mixed_operations(db_session, users):
    await fund(db_session, users.student, 200)
    _, entry = await wallet_service.debit(db_session, users.student, 120, "seat")
    wallet_service.complete_entry(entry)
    await wallet_service.credit(db_session, users.student, 120, "refund", kind=LedgerKind.REFUND)
    await db_session.commit()

    wallet = await wallet_service.get_wallet(db_session, users.student)
    assert await balance_of(db_session, users.student) == 200
    assert await wallet_service.ledger_balance(db_session, wallet.id) == 200


@pytest.mark.asyncio
async def test_credit_rejects_debit_kind(db_session, users):
    with pytest.raises(InvalidInputError):
        await wallet_service.credit(db_session, users.student, 10, "nope", kind=LedgerKind.DEBIT)


@pytest.mark.asyncio
async def test_amounts_must_be_positive_integers(db_session, users):
    with pytest.raises(InvalidInputError):
        await wallet_service.top_up(db_session, users.student, 0)
    with pytest.raises(InvalidInputError):
        await wallet_service.top_up(db_session, users.student, -5)


@pytest.mark.asyncio
async def test_debit_loses_race_against_concurrent_spend(db_session, users, monkeypatch):
    from conftest import TestSessionLocal

    await fund(db_session, users.student, 100)
    load_wallet = wallet_service.get_or_create_wallet

    async def stale_wallet(db, user_id):
        # Hand back the wallet as read, then let another request spend
        # most of it before the conditional update runs
        wallet = await load_wallet(db, user_id)
        async with TestSessionLocal() as other:
            await other.execute(
                update(Wallet).where(Wallet.id == wallet.id).values(balance=Wallet.balance - 70)
            )
            await other.commit()
        return wallet

    monkeypatch.setattr(wallet_service, "get_or_create_wallet", stale_wallet)

    with pytest.raises(InsufficientFundsError) as exc_info:
        await wallet_service.debit(db_session, users.student, 80, "Seat booking")
    await db_session.rollback()

    assert exc_info.value.details == {"required": 80, "available": 30}
    assert await balance_of(db_session, users.student) == 30
    debits = await db_session.execute(
        select(func.count()).select_from(LedgerEntry).where(LedgerEntry.kind == LedgerKind.DEBIT)
    )
    assert debits.scalar_one() == 0


@pytest.mark.asyncio
async def test_ledger_rejects_unknown_kind(db_session, users):
    await fund(db_session, users.student, 100)
    wallet = await wallet_service.get_wallet(db_session, users.student)

    db_session.add(
        LedgerEntry(
            wallet_id=wallet.id,
            user_id=users.student,
            kind="bonus",
            amount=5,
            status=LedgerStatus.COMPLETED,
        )
    )
    with pytest.raises(IntegrityError):
        await db_session.commit()
    await db_session.rollback()
