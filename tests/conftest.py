import os

# Repository latency and startup seeding are configured at import time
os.environ.setdefault("STORE_LATENCY_MIN_MS", "0")
os.environ.setdefault("STORE_LATENCY_MAX_MS", "0")
os.environ.setdefault("SEED_ON_STARTUP", "false")
os.environ.setdefault("DEFAULT_ORG_ID", "org-test")

import uuid
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal

import pytest
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from backoffice.db import init_db
from backoffice.models import (
    Account,
    Agent,
    AgentContract,
    AgentContractStatus,
    CallRecord,
    Contract,
    ContractStatus,
    Invoice,
    InvoiceStatus,
    Payment,
    PaymentProvider,
    PaymentStatus,
    Plan,
    RouteIntegration,
    RouteStatus,
)

ORG_ID = os.environ["DEFAULT_ORG_ID"]


@pytest.fixture()
def engine():
    engine = create_engine(
        "sqlite+pysqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    @event.listens_for(engine, "connect")
    def _enable_foreign_keys(dbapi_connection, _connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture()
def db_session(engine):
    SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


def _save(db_session, entity):
    db_session.add(entity)
    db_session.commit()
    db_session.refresh(entity)
    return entity


@pytest.fixture()
def plan(db_session):
    return _save(
        db_session,
        Plan(org_id=ORG_ID, name="MEO Standard", monthly_price=Decimal("30000.00")),
    )


@pytest.fixture()
def account(db_session):
    return _save(
        db_session,
        Account(
            org_id=ORG_ID,
            account_name=f"Store {uuid.uuid4().hex[:6]}",
            admin_email="owner@store.example",
        ),
    )


@pytest.fixture()
def make_contract(db_session, account, plan):
    def _make(status=ContractStatus.active, start_date=date(2026, 1, 1), **extra):
        return _save(
            db_session,
            Contract(
                org_id=ORG_ID,
                account_id=account.id,
                plan_id=plan.id,
                status=status,
                start_date=start_date,
                contract_monthly_price_snapshot=plan.monthly_price,
                payment_day=extra.pop("payment_day", 27),
                **extra,
            ),
        )

    return _make


@pytest.fixture()
def make_invoice(db_session):
    def _make(contract, billing_month=date(2026, 8, 1), status=InvoiceStatus.sent, due_date=None):
        return _save(
            db_session,
            Invoice(
                org_id=contract.org_id,
                contract_id=contract.id,
                billing_month=billing_month,
                amount=contract.contract_monthly_price_snapshot,
                status=status,
                due_date=due_date or date(2026, 9, 27),
                issue_date=billing_month,
            ),
        )

    return _make


@pytest.fixture()
def make_payment(db_session):
    def _make(contract, status=PaymentStatus.succeeded, invoice=None, amount=None):
        return _save(
            db_session,
            Payment(
                org_id=contract.org_id,
                contract_id=contract.id,
                invoice_id=invoice.id if invoice else None,
                provider=PaymentProvider.monthlypay,
                amount=amount or contract.contract_monthly_price_snapshot,
                currency="JPY",
                status=status,
                paid_at=datetime.now(timezone.utc) if status == PaymentStatus.succeeded else None,
            ),
        )

    return _make


@pytest.fixture()
def make_route(db_session):
    def _make(contract, status=RouteStatus.running):
        return _save(
            db_session,
            RouteIntegration(
                org_id=contract.org_id,
                contract_id=contract.id,
                account_id=contract.account_id,
                status=status,
            ),
        )

    return _make


@pytest.fixture()
def make_agent(db_session):
    def _make(monthly_target=10, stock_unit_price=Decimal("3000.00"), **extra):
        return _save(
            db_session,
            Agent(
                org_id=ORG_ID,
                name=extra.pop("name", "Kansai Partners"),
                contract_start_date=date(2026, 1, 1),
                stock_unit_price=stock_unit_price,
                monthly_target=monthly_target,
                **extra,
            ),
        )

    return _make


@pytest.fixture()
def credit_agent(db_session, make_contract):
    """Attach ``count`` agent contracts in ``status`` to an agent for a month."""

    def _credit(agent, billing_month, count, status=AgentContractStatus.active):
        rows = []
        for _ in range(count):
            contract = make_contract()
            rows.append(
                AgentContract(
                    agent_id=agent.id,
                    contract_id=contract.id,
                    billing_month=billing_month,
                    status=status,
                )
            )
        db_session.add_all(rows)
        db_session.commit()
        return rows

    return _credit


@pytest.fixture()
def make_call_record(db_session):
    base = datetime(2026, 9, 1, 9, 0, tzinfo=timezone.utc)

    def _make(index, **extra):
        return _save(
            db_session,
            CallRecord(
                org_id=ORG_ID,
                customer_id=f"C-{index:04d}",
                store_name=extra.pop("store_name", f"Store {index}"),
                customer_name=extra.pop("customer_name", f"Owner {index}"),
                phone1="03-1234-5678",
                created_at=base + timedelta(minutes=index),
                **extra,
            ),
        )

    return _make
