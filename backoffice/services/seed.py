"""Seed data set for the console and the reset-to-seed operation."""

import logging
import uuid
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.orm import Session

from backoffice.config import settings
from backoffice.db import Base
from backoffice.models import (
    Account,
    Agent,
    AgentContract,
    AgentContractStatus,
    AgentSettlement,
    BankAccountType,
    BillingMethod,
    CallHistory,
    CallRecord,
    CallRecordStatus,
    CallResult,
    Contract,
    ContractStatus,
    IntegrationStatus,
    Invoice,
    InvoiceStatus,
    OpsLog,
    OpsLogAction,
    Payment,
    PaymentProvider,
    PaymentStatus,
    Plan,
    RouteIntegration,
    RouteStatus,
)
from backoffice.services.common import (
    billing_today,
    clamp_day,
    current_billing_month,
    next_billing_month,
    previous_billing_month,
)

logger = logging.getLogger(__name__)


def _at(day: date, hour: int = 10) -> datetime:
    return datetime(day.year, day.month, day.day, hour, tzinfo=timezone.utc)


def _invoice(contract: Contract, month: date, status: InvoiceStatus, **extra) -> Invoice:
    return Invoice(
        id=uuid.uuid4(),
        org_id=contract.org_id,
        contract_id=contract.id,
        billing_month=month,
        amount=contract.contract_monthly_price_snapshot,
        status=status,
        due_date=clamp_day(next_billing_month(month), contract.payment_day),
        issue_date=month,
        **extra,
    )


def build_seed(org_id: str | None = None) -> list:
    """Return the seed rows, relative to the current billing month."""
    org_id = org_id or settings.default_org_id
    today = billing_today()
    this_month = current_billing_month()
    last_month = previous_billing_month(this_month)
    two_months_ago = previous_billing_month(last_month)

    standard = Plan(
        id=uuid.uuid4(), org_id=org_id, name="MEO Standard",
        monthly_price=Decimal("30000.00"), setup_fee=Decimal("50000.00"),
    )
    light = Plan(
        id=uuid.uuid4(), org_id=org_id, name="MEO Light",
        monthly_price=Decimal("15000.00"), setup_fee=Decimal("0.00"),
    )

    accounts = [
        Account(
            id=uuid.uuid4(), org_id=org_id, account_name="Cafe Hanamizuki",
            admin_email="owner@hanamizuki.example", postal_code="150-0001",
            prefecture="Tokyo", address_detail="Shibuya-ku Jingumae 1-2-3",
            phone_area="03", phone_local="1234", phone_number="5678",
            account_manager="Sato", instagram_integration=IntegrationStatus.connected,
            gbp_management=IntegrationStatus.connected,
        ),
        Account(
            id=uuid.uuid4(), org_id=org_id, account_name="Ramen Tsubaki",
            admin_email="info@tsubaki.example", postal_code="530-0001",
            prefecture="Osaka", address_detail="Kita-ku Umeda 4-5-6",
            account_manager="Suzuki",
        ),
        Account(
            id=uuid.uuid4(), org_id=org_id, account_name="Salon Kaede",
            admin_email="desk@kaede.example", postal_code="460-0008",
            prefecture="Aichi", address_detail="Naka-ku Sakae 7-8-9",
            account_manager="Takahashi", line_official_notification=True,
        ),
    ]

    def contract(account, plan, status, start, **extra):
        return Contract(
            id=uuid.uuid4(), org_id=org_id, account_id=account.id, plan_id=plan.id,
            status=status, start_date=start, billing_method=BillingMethod.monthlypay,
            contract_monthly_price_snapshot=plan.monthly_price, payment_day=27,
            sales_owner_user_id="sales-01", ops_owner_user_id="ops-01", **extra,
        )

    lead = contract(accounts[2], light, ContractStatus.lead, this_month)
    won = contract(accounts[1], light, ContractStatus.closed_won, this_month)
    active = contract(accounts[0], standard, ContractStatus.active, two_months_ago)
    pending = contract(
        accounts[1], standard, ContractStatus.cancel_pending, two_months_ago,
        billing_method=BillingMethod.invoice,
        cancellation_requested_at=_at(today - timedelta(days=3)),
        cancellation_effective_date=clamp_day(this_month, 31),
        cancellation_reason="Store closing",
    )
    contracts = [lead, won, active, pending]

    invoices = [
        _invoice(active, two_months_ago, InvoiceStatus.paid, sent_at=_at(two_months_ago)),
        _invoice(active, last_month, InvoiceStatus.sent, sent_at=_at(last_month)),
        _invoice(pending, two_months_ago, InvoiceStatus.overdue, sent_at=_at(two_months_ago)),
    ]
    payments = [
        Payment(
            id=uuid.uuid4(), org_id=org_id, contract_id=active.id, invoice_id=invoices[0].id,
            provider=PaymentProvider.monthlypay, amount=invoices[0].amount,
            currency=settings.billing_currency, status=PaymentStatus.succeeded,
            paid_at=_at(invoices[0].due_date),
        ),
        Payment(
            id=uuid.uuid4(), org_id=org_id, contract_id=pending.id, invoice_id=invoices[2].id,
            provider=PaymentProvider.bank_transfer, amount=invoices[2].amount,
            currency=settings.billing_currency, status=PaymentStatus.failed,
            failure_reason="Insufficient funds",
        ),
    ]
    routes = [
        RouteIntegration(
            id=uuid.uuid4(), org_id=org_id, contract_id=active.id, account_id=active.account_id,
            status=RouteStatus.running, running_started_at=_at(two_months_ago),
            location_name="Cafe Hanamizuki Jingumae",
            facebook_status=IntegrationStatus.connected,
            instagram_status=IntegrationStatus.connected,
            gbp_status=IntegrationStatus.connected,
            line_status=IntegrationStatus.connected,
        ),
        RouteIntegration(
            id=uuid.uuid4(), org_id=org_id, contract_id=pending.id, account_id=pending.account_id,
            status=RouteStatus.running, running_started_at=_at(two_months_ago),
            location_name="Ramen Tsubaki Umeda",
            facebook_status=IntegrationStatus.connected,
            instagram_status=IntegrationStatus.error,
            instagram_error="Token expired",
            gbp_status=IntegrationStatus.connected,
            line_status=IntegrationStatus.not_connected,
        ),
    ]
    ops_logs = [
        OpsLog(
            id=uuid.uuid4(), org_id=org_id, contract_id=pending.id,
            actor_user_id=settings.default_actor_id, action=OpsLogAction.status_changed,
            before={"status": ContractStatus.active.value},
            after={"status": ContractStatus.cancel_pending.value},
            reason="Store closing", created_at=pending.cancellation_requested_at,
        ),
    ]

    agents = [
        Agent(
            id=uuid.uuid4(), org_id=org_id, name="Kansai Partners",
            contract_start_date=two_months_ago, stock_unit_price=Decimal("3000.00"),
            monthly_target=10, contact_email="payout@kansai.example",
            bank_name="Mizuho", bank_branch="Umeda", bank_account_type=BankAccountType.ordinary,
            bank_account_number="1234567", bank_account_holder="KANSAI PARTNERS",
        ),
        Agent(
            id=uuid.uuid4(), org_id=org_id, name="Tokai Sales",
            contract_start_date=two_months_ago, stock_unit_price=Decimal("2500.00"),
            monthly_target=5,
        ),
    ]
    agent_contracts = [
        AgentContract(
            id=uuid.uuid4(), agent_id=agents[0].id, contract_id=item.id,
            billing_month=last_month, status=status,
        )
        for item, status in (
            (active, AgentContractStatus.active),
            (pending, AgentContractStatus.cancelled),
            (won, AgentContractStatus.active),
        )
    ]
    settlements = [
        AgentSettlement(
            id=uuid.uuid4(), agent_id=agents[1].id, billing_month=two_months_ago,
            entitled_count=5, payable_count=4, cancelled_offset=0,
            unit_price=Decimal("2500.00"), total_amount=Decimal("10000.00"),
            invoice_id="agent-inv-seed0001",
        ),
    ]

    call_records = []
    base_time = _at(today - timedelta(days=7), hour=9)
    for index, (store, customer, status) in enumerate(
        (
            ("Bakery Komugi", "Ito", CallRecordStatus.new),
            ("Izakaya Hoshi", "Watanabe", CallRecordStatus.recall),
            ("Dental Aoba", "Yamamoto", CallRecordStatus.won),
        )
    ):
        call_records.append(
            CallRecord(
                id=uuid.uuid4(), org_id=org_id, customer_id=f"CUST-{1001 + index}",
                store_name=store, customer_name=customer, phone1=f"090-0000-{1000 + index}",
                industry="food" if index < 2 else "medical", status=status,
                re_call_assignee="caller-01" if status == CallRecordStatus.recall else None,
                re_call_date=today + timedelta(days=2) if status == CallRecordStatus.recall else None,
                created_by="seed", modified_by="seed",
                created_at=base_time + timedelta(minutes=index),
                updated_at=base_time + timedelta(minutes=index),
            )
        )
    call_history = [
        CallHistory(
            id=uuid.uuid4(), call_record_id=call_records[1].id, org_id=org_id,
            caller_employee_name="Kobayashi", result=CallResult.callback,
            started_at=base_time, ended_at=base_time + timedelta(minutes=4),
            duration_seconds=240, result_note="Call back after lunch rush",
        ),
    ]

    return [
        standard, light, *accounts, *contracts, *invoices, *payments, *routes, *ops_logs,
        *agents, *agent_contracts, *settlements, *call_records, *call_history,
    ]


def load_seed(db: Session, org_id: str | None = None) -> None:
    db.add_all(build_seed(org_id))
    db.commit()
    logger.info("Loaded seed data for %s", org_id or settings.default_org_id)


def is_empty(db: Session) -> bool:
    return db.scalars(select(Plan.id).limit(1)).first() is None


def reset_to_seed(db: Session, org_id: str | None = None) -> None:
    """Delete every row and reload the seed data set."""
    try:
        for table in reversed(Base.metadata.sorted_tables):
            db.execute(table.delete())
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.expunge_all()
    load_seed(db, org_id)
