from backoffice.tasks.agents import run_monthly_settlements
from backoffice.tasks.billing import run_invoice_generation

__all__ = [
    "run_monthly_settlements",
    "run_invoice_generation",
]
