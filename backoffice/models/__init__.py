from backoffice.models.account import Account, Plan  # noqa: F401
from backoffice.models.agents import (  # noqa: F401
    Agent,
    AgentContract,
    AgentContractStatus,
    AgentMonthlyEntitlement,
    AgentMonthlyPerformance,
    AgentSettlement,
    BankAccountType,
    PayoutMethod,
    PayoutStatus,
    SettlementStatus,
)
from backoffice.models.billing import (  # noqa: F401
    Invoice,
    InvoiceStatus,
    Payment,
    PaymentProvider,
    PaymentStatus,
)
from backoffice.models.calls import CallHistory, CallRecord, CallRecordStatus, CallResult  # noqa: F401
from backoffice.models.contracts import BillingMethod, Contract, ContractStatus  # noqa: F401
from backoffice.models.ops_log import OpsLog, OpsLogAction  # noqa: F401
from backoffice.models.route import IntegrationStatus, RouteIntegration, RouteStatus  # noqa: F401

