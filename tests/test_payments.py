from decimal import Decimal

import pytest
from httpx import AsyncClient
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.v1.payments import service as payments_service
from app.core.enums import UserRole
from app.core.exceptions import ConflictError
from app.core.models import Fee, PaymentTransaction
from app.integrations.paynow import PaynowGateway


def _initiate_body(student: str, amount: str = "150") -> dict:
    return {"student_id": student, "term": "Term 1", "academic_year": "2025", "amount": amount}


async def _initiate(client: AsyncClient, student, headers) -> dict:
    response = await client.post("/api/v1/payments/initiate", json=_initiate_body(student.student_code), headers=headers)
    assert response.status_code == 201, response.text
    return response.json()["data"]


async def _fee(db: AsyncSession, student) -> Fee:
    result = await db.execute(
        select(Fee).where(Fee.student_id == student.id).execution_options(populate_existing=True)
    )
    return result.scalar_one()


@pytest.mark.asyncio
async def test_initiate_creates_fee_and_pending_transaction(
    client: AsyncClient, db_session: AsyncSession, fake_paynow, gateway: PaynowGateway, make_account
) -> None:
    _, student, headers = await make_account(UserRole.STUDENT, "payer", first_name="Rufaro")

    data = await _initiate(client, student, headers)
    assert data["reference"].startswith(f"SCHOOL_{student.student_code}_")
    assert data["redirect_url"].endswith(data["reference"])
    assert data["student"]["email"] == "payer@example.com"

    sent = fake_paynow.initiated[0]
    assert sent["reference"] == data["reference"]
    assert sent["amount"] == "150.00"
    assert sent["authemail"] == "payer@example.com"
    assert gateway.verify_hash(sent)

    txn = (await db_session.execute(select(PaymentTransaction))).scalar_one()
    assert txn.status == "pending"
    assert txn.student_code == student.student_code

    fee = await _fee(db_session, student)
    assert fee.total_amount == Decimal("150")
    assert txn.fee_id == fee.id


@pytest.mark.asyncio
async def test_initiate_failure_keeps_fee(
    client: AsyncClient, db_session: AsyncSession, fake_paynow, make_account
) -> None:
    _, student, headers = await make_account(UserRole.STUDENT, "unlucky")
    fake_paynow.fail_initiate = True

    response = await client.post(
        "/api/v1/payments/initiate", json=_initiate_body(student.student_code), headers=headers
    )
    assert response.status_code == 502
    assert response.json()["message"].startswith("Payment initiation failed:")

    assert (await db_session.execute(select(PaymentTransaction))).scalars().all() == []
    assert (await _fee(db_session, student)).total_amount == Decimal("150")


@pytest.mark.asyncio
async def test_student_cannot_pay_for_another_student(client: AsyncClient, make_account) -> None:
    _, _, headers = await make_account(UserRole.STUDENT, "alice")
    _, other, _ = await make_account(UserRole.STUDENT, "bob")
    response = await client.post(
        "/api/v1/payments/initiate", json=_initiate_body(other.student_code), headers=headers
    )
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_status_check_records_payment_once(
    client: AsyncClient, db_session: AsyncSession, fake_paynow, make_account
) -> None:
    _, student, headers = await make_account(UserRole.STUDENT, "poller")
    data = await _initiate(client, student, headers)

    pending = await client.get(f"/api/v1/payments/status/{data['reference']}", headers=headers)
    assert pending.json()["data"]["status"] == "pending"
    assert pending.json()["data"]["fee_updated"] is False

    fake_paynow.set_status(data["reference"], "Paid", "PN-998877")
    first = await client.get(f"/api/v1/payments/status/{data['reference']}", headers=headers)
    second = await client.get(f"/api/v1/payments/status/{data['reference']}", headers=headers)

    assert first.json()["data"]["status"] == "paid"
    assert first.json()["data"]["fee_updated"] is True
    assert first.json()["data"]["gateway_reference"] == "PN-998877"
    assert second.json()["data"]["fee_updated"] is False

    fee = await _fee(db_session, student)
    assert len(fee.payments) == 1
    assert fee.payments[0].receipt_number == "PN-998877"
    assert fee.payments[0].payment_method == "gateway"
    assert fee.status == "paid"


@pytest.mark.asyncio
async def test_status_check_maps_cancelled(client: AsyncClient, fake_paynow, make_account) -> None:
    _, student, headers = await make_account(UserRole.STUDENT, "quitter")
    data = await _initiate(client, student, headers)

    fake_paynow.set_status(data["reference"], "Cancelled")
    response = await client.get(f"/api/v1/payments/status/{data['reference']}", headers=headers)
    assert response.json()["data"]["status"] == "cancelled"


@pytest.mark.asyncio
async def test_status_unknown_reference(client: AsyncClient, make_account) -> None:
    _, _, headers = await make_account(UserRole.STUDENT, "lost")
    response = await client.get("/api/v1/payments/status/SCHOOL_NOPE_1", headers=headers)
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_cancel_only_from_pending(
    client: AsyncClient, db_session: AsyncSession, make_account
) -> None:
    _, student, headers = await make_account(UserRole.STUDENT, "canceller")
    data = await _initiate(client, student, headers)

    first = await client.post(f"/api/v1/payments/cancel/{data['reference']}", headers=headers)
    assert first.status_code == 200

    again = await client.post(f"/api/v1/payments/cancel/{data['reference']}", headers=headers)
    assert again.status_code == 400
    assert "cancelled" in again.json()["message"]


@pytest.mark.asyncio
async def test_webhook_unknown_reference_is_soft_failure(client: AsyncClient, sign_paynow) -> None:
    response = await client.post(
        "/api/v1/payments/webhook",
        data=sign_paynow({"reference": "SCHOOL_GHOST_1", "paynowreference": "1", "amount": "5.00", "status": "Paid"}),
    )
    assert response.status_code == 200
    assert response.json()["success"] is False


@pytest.mark.asyncio
async def test_webhook_paid_then_status_check_is_idempotent(
    client: AsyncClient, db_session: AsyncSession, fake_paynow, make_account, sign_paynow
) -> None:
    _, student, headers = await make_account(UserRole.STUDENT, "hooked")
    data = await _initiate(client, student, headers)
    fields = sign_paynow(
        {"reference": data["reference"], "paynowreference": "PN-1", "amount": "150.00", "status": "Paid"}
    )

    hook = await client.post("/api/v1/payments/webhook", data=fields)
    assert hook.status_code == 200
    assert hook.json() == {
        "success": True,
        "message": "Webhook processed successfully",
        "reference": data["reference"],
        "status": "paid",
    }
    # Same notification delivered twice
    await client.post("/api/v1/payments/webhook", json=fields)

    fake_paynow.set_status(data["reference"], "Paid", "PN-1")
    await client.get(f"/api/v1/payments/status/{data['reference']}", headers=headers)

    fee = await _fee(db_session, student)
    assert len(fee.payments) == 1
    assert fee.paid_amount == Decimal("150")


@pytest.mark.asyncio
async def test_webhook_bad_hash_and_awaiting_delivery(
    client: AsyncClient, db_session: AsyncSession, make_account, sign_paynow
) -> None:
    _, student, headers = await make_account(UserRole.STUDENT, "tampered")
    data = await _initiate(client, student, headers)

    forged = sign_paynow({"reference": data["reference"], "paynowreference": "PN-2", "status": "Paid"})
    forged["status"] = "Paid "
    rejected = await client.post("/api/v1/payments/webhook", data=forged)
    assert rejected.status_code == 200
    assert rejected.json()["success"] is False

    delivery = sign_paynow({"reference": data["reference"], "paynowreference": "PN-2", "status": "Awaiting Delivery"})
    accepted = await client.post("/api/v1/payments/webhook", data=delivery)
    assert accepted.json()["status"] == "awaiting_delivery"

    txn = (await db_session.execute(select(PaymentTransaction))).scalar_one()
    assert txn.status == "awaiting_delivery"
    assert (await _fee(db_session, student)).payments == []


@pytest.mark.asyncio
async def test_transaction_listings(client: AsyncClient, admin, make_account) -> None:
    _, student, headers = await make_account(UserRole.STUDENT, "lister")
    await _initiate(client, student, headers)

    own = await client.get(f"/api/v1/payments/transactions/{student.student_code}", headers=headers)
    assert own.json()["count"] == 1

    assert (await client.get("/api/v1/payments/transactions", headers=headers)).status_code == 403
    everything = await client.get("/api/v1/payments/transactions", headers=admin[2])
    assert everything.json()["count"] == 1


@pytest.mark.asyncio
async def test_paid_poll_later_carrying_gateway_reference_records_once(
    client: AsyncClient, db_session: AsyncSession, fake_paynow, make_account
) -> None:
    _, student, headers = await make_account(UserRole.STUDENT, "twicepolled")
    data = await _initiate(client, student, headers)

    fake_paynow.set_status(data["reference"], "Paid", "")
    first = await client.get(f"/api/v1/payments/status/{data['reference']}", headers=headers)
    assert first.json()["data"]["fee_updated"] is True

    fake_paynow.set_status(data["reference"], "Paid", "PN-7")
    second = await client.get(f"/api/v1/payments/status/{data['reference']}", headers=headers)
    assert second.json()["data"]["fee_updated"] is False
    assert second.json()["data"]["gateway_reference"] == "PN-7"

    fee = await _fee(db_session, student)
    assert len(fee.payments) == 1
    assert fee.payments[0].receipt_number == data["reference"]
    assert fee.paid_amount == Decimal("150")
    assert fee.balance == Decimal("0")


@pytest.mark.asyncio
async def test_webhook_after_referenceless_poll_does_not_pay_again(
    client: AsyncClient, db_session: AsyncSession, fake_paynow, make_account, sign_paynow
) -> None:
    _, student, headers = await make_account(UserRole.STUDENT, "mixedpaths")
    data = await _initiate(client, student, headers)

    fake_paynow.set_status(data["reference"], "Paid", "")
    await client.get(f"/api/v1/payments/status/{data['reference']}", headers=headers)

    fields = sign_paynow(
        {"reference": data["reference"], "paynowreference": "PN-8", "amount": "150.00", "status": "Paid"}
    )
    hook = await client.post("/api/v1/payments/webhook", data=fields)
    assert hook.json()["success"] is True

    fee = await _fee(db_session, student)
    assert len(fee.payments) == 1
    assert fee.paid_amount == Decimal("150")


@pytest.mark.asyncio
async def test_webhook_unreadable_body_is_acknowledged(client: AsyncClient) -> None:
    garbage = await client.post(
        "/api/v1/payments/webhook", content=b"not json", headers={"Content-Type": "application/json"}
    )
    assert garbage.status_code == 200
    assert garbage.json()["success"] is False
    assert garbage.json()["message"] == "Invalid payload"

    array = await client.post("/api/v1/payments/webhook", json=[1, 2])
    assert array.status_code == 200
    assert array.json()["success"] is False


@pytest.mark.asyncio
async def test_webhook_save_conflict_is_acknowledged(
    client: AsyncClient, make_account, sign_paynow, monkeypatch
) -> None:
    _, student, headers = await make_account(UserRole.STUDENT, "racing")
    data = await _initiate(client, student, headers)

    async def conflicting_commit(db, message: str = "") -> None:
        await db.rollback()
        raise ConflictError("Fee record was modified concurrently")

    monkeypatch.setattr(payments_service, "commit_or_conflict", conflicting_commit)
    fields = sign_paynow(
        {"reference": data["reference"], "paynowreference": "PN-9", "amount": "150.00", "status": "Paid"}
    )
    response = await client.post("/api/v1/payments/webhook", data=fields)
    assert response.status_code == 200
    assert response.json()["success"] is False
    assert response.json()["reference"] == data["reference"]
