from datetime import date
from decimal import Decimal
from unittest.mock import AsyncMock, patch

import pytest
from fastapi import HTTPException

from backoffice import repositories as repo
from backoffice.models import (
    ContractStatus,
    InvoiceStatus,
    OpsLogAction,
    PaymentProvider,
    PaymentStatus,
)
from backoffice.schemas.billing import PaymentCreate
from backoffice.services import billing as billing_service
from backoffice.services import ops_logs as ops_logs_service
from backoffice.services.collections import classify_urgency, collections


def test_invoice_due_date_clamps_to_month_end():
    assert billing_service.invoice_due_date(date(2026, 1, 1), 31) == date(2026, 2, 28)
    assert billing_service.invoice_due_date(date(2026, 12, 1), 27) == date(2027, 1, 27)


@pytest.mark.asyncio
async def test_generate_invoice_uses_price_snapshot(db_session, make_contract):
    contract = make_contract(payment_day=31)

    invoice = await billing_service.invoices.generate(db_session, contract.id, "2026-01")

    assert invoice.status == InvoiceStatus.draft
    assert invoice.amount == Decimal("30000.00")
    assert invoice.billing_month == date(2026, 1, 1)
    assert invoice.due_date == date(2026, 2, 28)
    logs = await ops_logs_service.ops_logs.list_by_contract(db_session, str(contract.id))
    assert [log.action for log in logs] == [OpsLogAction.invoice_generated]


@pytest.mark.asyncio
async def test_generate_invoice_twice_is_conflict(db_session, make_contract):
    contract = make_contract()
    await billing_service.invoices.generate(db_session, contract.id, "2026-03")

    with pytest.raises(HTTPException) as exc:
        await billing_service.invoices.generate(db_session, contract.id, "2026-03")

    assert exc.value.status_code == 409
    assert len(await billing_service.invoices.list_by_contract(db_session, str(contract.id))) == 1


@pytest.mark.asyncio
async def test_generate_invoice_rejects_lead_contract(db_session, make_contract):
    contract = make_contract(status=ContractStatus.lead)

    with pytest.raises(HTTPException) as exc:
        await billing_service.invoices.generate(db_session, contract.id, "2026-03")

    assert exc.value.status_code == 400


@pytest.mark.asyncio
async def test_generate_invoice_rejects_bad_month(db_session, make_contract):
    contract = make_contract()

    with pytest.raises(HTTPException) as exc:
        await billing_service.invoices.generate(db_session, contract.id, "March")

    assert exc.value.status_code == 400


@pytest.mark.asyncio
async def test_manual_payment_settles_sent_invoice(db_session, make_contract):
    contract = make_contract()
    invoice = await billing_service.invoices.generate(db_session, contract.id, "2026-04")
    await billing_service.invoices.send(db_session, str(invoice.id))

    payment = await billing_service.invoices.record_manual_payment(
        db_session, str(invoice.id), actor_user_id="ops-3", note="Paid at counter"
    )

    db_session.refresh(invoice)
    assert invoice.status == InvoiceStatus.paid
    assert payment.status == PaymentStatus.succeeded
    assert payment.provider == PaymentProvider.manual
    assert payment.amount == invoice.amount
    assert payment.provider_payment_id.startswith("manual-")
    logs = await ops_logs_service.ops_logs.list_by_contract(db_session, str(contract.id))
    assert logs[0].action == OpsLogAction.payment_manual_recorded
    assert logs[0].after["payment_id"] == str(payment.id)


@pytest.mark.asyncio
async def test_draft_invoice_cannot_be_paid(db_session, make_contract):
    contract = make_contract()
    invoice = await billing_service.invoices.generate(db_session, contract.id, "2026-04")

    with pytest.raises(HTTPException) as exc:
        await billing_service.invoices.record_manual_payment(db_session, str(invoice.id))

    assert exc.value.status_code == 400
    assert await billing_service.payments.list_by_invoice(db_session, str(invoice.id)) == []


@pytest.mark.asyncio
async def test_generate_for_month_skips_billed_and_inactive(db_session, make_contract):
    billed = make_contract()
    fresh = make_contract(status=ContractStatus.cancel_pending)
    make_contract(status=ContractStatus.lead)
    await billing_service.invoices.generate(db_session, billed.id, "2026-05")

    result = await billing_service.invoices.generate_for_month(db_session, None, "2026-05")

    assert result["billing_month"] == "2026-05"
    assert len(result["generated"]) == 1
    generated = await billing_service.invoices.get(db_session, result["generated"][0])
    assert generated.contract_id == fresh.id


@pytest.mark.asyncio
async def test_payment_transitions_only_from_pending(db_session, make_contract):
    contract = make_contract()
    payment = await billing_service.payments.create(
        db_session,
        PaymentCreate(contract_id=contract.id, amount=Decimal("30000")),
    )
    assert payment.status == PaymentStatus.pending
    assert payment.currency == "JPY"

    failed = await billing_service.payments.mark_failed(db_session, str(payment.id), "Card declined")
    assert failed.failure_reason == "Card declined"

    with pytest.raises(HTTPException) as exc:
        await billing_service.payments.mark_succeeded(db_session, str(payment.id))
    assert exc.value.status_code == 400


def test_classify_urgency_thresholds():
    assert classify_urgency(3) == "normal"
    assert classify_urgency(7) == "warning"
    assert classify_urgency(14) == "critical"


@pytest.mark.asyncio
async def test_overdue_board_orders_worst_first(
    db_session, make_contract, make_invoice, make_payment
):
    contract = make_contract()
    make_invoice(contract, billing_month=date(2026, 7, 1), due_date=date(2026, 9, 1))
    make_invoice(contract, billing_month=date(2026, 8, 1), due_date=date(2026, 9, 15))
    make_invoice(
        contract,
        billing_month=date(2026, 6, 1),
        status=InvoiceStatus.paid,
        due_date=date(2026, 8, 1),
    )
    make_invoice(contract, billing_month=date(2026, 9, 1), due_date=date(2026, 10, 27))
    make_payment(contract, status=PaymentStatus.failed)

    board = await collections.overdue_board(db_session, today=date(2026, 9, 20))

    assert board["count"] == 2
    assert [item["overdue_days"] for item in board["items"]] == [19, 5]
    assert [item["urgency"] for item in board["items"]] == ["critical", "normal"]
    assert board["total_overdue_amount"] == Decimal("60000.00")
    assert len(board["failed_payments"]) == 1


@pytest.mark.asyncio
async def test_sent_invoice_past_due_reads_overdue(db_session, make_contract, make_invoice):
    contract = make_contract()
    invoice = make_invoice(contract, due_date=date(2026, 9, 1))

    assert invoice.status == InvoiceStatus.sent
    assert invoice.effective_status(date(2026, 9, 2)) == InvoiceStatus.overdue
    assert invoice.overdue_days(date(2026, 9, 2)) == 1
    assert invoice.effective_status(date(2026, 9, 1)) == InvoiceStatus.sent


@pytest.mark.asyncio
async def test_overdue_and_void_write_ops_log(db_session, make_contract, make_invoice):
    contract = make_contract()
    overdue = make_invoice(contract, billing_month=date(2026, 6, 1))
    voided = make_invoice(contract, billing_month=date(2026, 7, 1), status=InvoiceStatus.draft)

    overdue = await billing_service.invoices.mark_overdue(db_session, str(overdue.id), "ops-2")
    voided = await billing_service.invoices.void(db_session, str(voided.id), "Issued twice")

    assert overdue.status == InvoiceStatus.overdue
    assert voided.status == InvoiceStatus.void
    logs = await ops_logs_service.ops_logs.list_by_contract(db_session, str(contract.id))
    by_action = {log.action: log for log in logs}
    assert by_action[OpsLogAction.invoice_overdue].actor_user_id == "ops-2"
    assert by_action[OpsLogAction.invoice_overdue].before["status"] == "sent"
    assert by_action[OpsLogAction.invoice_overdue].after["status"] == "overdue"
    assert by_action[OpsLogAction.invoice_voided].before["status"] == "draft"
    assert by_action[OpsLogAction.invoice_voided].reason == "Issued twice"


@pytest.mark.asyncio
async def test_void_rolls_back_when_ops_log_fails(db_session, make_contract, make_invoice):
    contract = make_contract()
    invoice = make_invoice(contract)

    with patch.object(repo.ops_logs, "append", AsyncMock(side_effect=RuntimeError("store down"))):
        with pytest.raises(RuntimeError):
            await billing_service.invoices.void(db_session, str(invoice.id))

    db_session.refresh(invoice)
    assert invoice.status == InvoiceStatus.sent
    assert invoice.adjustment_note is None
