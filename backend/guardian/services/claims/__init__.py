"""Insurance claim lifecycle engine."""
from guardian.services.claims.filing import FilingOrchestrator, FilingOutcome
from guardian.services.claims.locks import ClaimLockManager
from guardian.services.claims.reconciler import ClaimFinancials, FinancialSummary, reconcile, summarize
from guardian.services.claims.service import ClaimService
from guardian.services.claims.store import ClaimStore, CustomerDirectory, PhotoLibrary
from guardian.services.claims.sync import SweepReport, SyncOrchestrator, SyncOutcome, SyncSweep

__all__ = [
    "FilingOrchestrator",
    "FilingOutcome",
    "ClaimLockManager",
    "ClaimFinancials",
    "FinancialSummary",
    "reconcile",
    "summarize",
    "ClaimService",
    "ClaimStore",
    "CustomerDirectory",
    "PhotoLibrary",
    "SweepReport",
    "SyncOrchestrator",
    "SyncOutcome",
    "SyncSweep",
]
