from backoffice.repositories.accounts import accounts, plans  # noqa: F401
from backoffice.repositories.agents import (  # noqa: F401
    agent_contracts,
    agent_entitlements,
    agent_performance,
    agents,
    settlements,
)
from backoffice.repositories.billing import invoices, payments  # noqa: F401
from backoffice.repositories.calls import call_history, call_records  # noqa: F401
from backoffice.repositories.contracts import contracts  # noqa: F401
from backoffice.repositories.ops_logs import ops_logs  # noqa: F401
from backoffice.repositories.routes import routes  # noqa: F401
