from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from backoffice.db import get_db
from backoffice.schemas.billing import (
    InvoiceAction,
    InvoiceGenerate,
    InvoiceRead,
    ManualPaymentCreate,
    OverdueBoardRead,
    PaymentCreate,
    PaymentFailed,
    PaymentRead,
    PaymentSucceeded,
)
from backoffice.schemas.common import ListResponse
from backoffice.services import billing as billing_service
from backoffice.services.collections import collections

router = APIRouter()


# --- Invoices ---


@router.get("/invoices", response_model=ListResponse[InvoiceRead], tags=["invoices"])
async def list_invoices(
    org_id: str | None = None,
    month: str | None = Query(default=None, description="YYYY-MM"),
    status: str | None = None,
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
    db: Session = Depends(get_db),
):
    return await billing_service.invoices.list_response(
        db, org_id, month, status, limit, offset
    )


@router.get(
    "/contracts/{contract_id}/invoices", response_model=list[InvoiceRead], tags=["invoices"]
)
async def list_contract_invoices(contract_id: str, db: Session = Depends(get_db)):
    return await billing_service.invoices.list_by_contract(db, contract_id)


@router.post(
    "/contracts/{contract_id}/invoices",
    response_model=InvoiceRead,
    status_code=status.HTTP_201_CREATED,
    tags=["invoices"],
)
async def generate_invoice(
    contract_id: str, payload: InvoiceGenerate | None = None, db: Session = Depends(get_db)
):
    payload = payload or InvoiceGenerate()
    return await billing_service.invoices.generate(
        db, contract_id, payload.billing_month, payload.actor_user_id
    )


@router.get("/invoices/{invoice_id}", response_model=InvoiceRead, tags=["invoices"])
async def get_invoice(invoice_id: str, db: Session = Depends(get_db)):
    return await billing_service.invoices.get(db, invoice_id)


@router.post("/invoices/{invoice_id}/send", response_model=InvoiceRead, tags=["invoices"])
async def send_invoice(
    invoice_id: str, payload: InvoiceAction | None = None, db: Session = Depends(get_db)
):
    payload = payload or InvoiceAction()
    return await billing_service.invoices.send(db, invoice_id, payload.actor_user_id)


@router.post(
    "/invoices/{invoice_id}/payments",
    response_model=PaymentRead,
    status_code=status.HTTP_201_CREATED,
    tags=["invoices"],
)
async def record_manual_payment(
    invoice_id: str, payload: ManualPaymentCreate | None = None, db: Session = Depends(get_db)
):
    payload = payload or ManualPaymentCreate()
    return await billing_service.invoices.record_manual_payment(
        db,
        invoice_id,
        actor_user_id=payload.actor_user_id,
        paid_at=payload.paid_at,
        provider_payment_id=payload.provider_payment_id,
        note=payload.note,
    )


@router.post("/invoices/{invoice_id}/overdue", response_model=InvoiceRead, tags=["invoices"])
async def mark_invoice_overdue(
    invoice_id: str, payload: InvoiceAction | None = None, db: Session = Depends(get_db)
):
    payload = payload or InvoiceAction()
    return await billing_service.invoices.mark_overdue(
        db, invoice_id, actor_user_id=payload.actor_user_id
    )


@router.post("/invoices/{invoice_id}/void", response_model=InvoiceRead, tags=["invoices"])
async def void_invoice(
    invoice_id: str, payload: InvoiceAction | None = None, db: Session = Depends(get_db)
):
    payload = payload or InvoiceAction()
    return await billing_service.invoices.void(
        db, invoice_id, payload.note, actor_user_id=payload.actor_user_id
    )


# --- Payments ---


@router.post(
    "/payments",
    response_model=PaymentRead,
    status_code=status.HTTP_201_CREATED,
    tags=["payments"],
)
async def create_payment(payload: PaymentCreate, db: Session = Depends(get_db)):
    return await billing_service.payments.create(db, payload)


@router.get(
    "/contracts/{contract_id}/payments", response_model=list[PaymentRead], tags=["payments"]
)
async def list_contract_payments(contract_id: str, db: Session = Depends(get_db)):
    return await billing_service.payments.list_by_contract(db, contract_id)


@router.post(
    "/payments/{payment_id}/succeeded", response_model=PaymentRead, tags=["payments"]
)
async def mark_payment_succeeded(
    payment_id: str, payload: PaymentSucceeded | None = None, db: Session = Depends(get_db)
):
    payload = payload or PaymentSucceeded()
    return await billing_service.payments.mark_succeeded(db, payment_id, payload.paid_at)


@router.post("/payments/{payment_id}/failed", response_model=PaymentRead, tags=["payments"])
async def mark_payment_failed(
    payment_id: str, payload: PaymentFailed, db: Session = Depends(get_db)
):
    return await billing_service.payments.mark_failed(db, payment_id, payload.reason)


# --- Collections ---


@router.get("/overdue", response_model=OverdueBoardRead, tags=["collections"])
async def overdue_board(org_id: str | None = None, db: Session = Depends(get_db)):
    return await collections.overdue_board(db, org_id)
