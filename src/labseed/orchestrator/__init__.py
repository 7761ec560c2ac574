"""Resource orchestration: create and tear down account trees."""

from labseed.orchestrator.bulk import PrefixSelection, delete_by_prefix, list_accounts, select_prefix_matches
from labseed.orchestrator.engine import CleanupPolicy, ResourceOrchestrator, account_age_days
from labseed.orchestrator.events import (
    CompositeObserver,
    EventLevel,
    LoggingObserver,
    NullObserver,
    Observer,
    StepEvent,
)
from labseed.orchestrator.polling import poll_until
from labseed.orchestrator.results import (
    AccountResult,
    CleanupOutcome,
    CleanupReport,
    CleanupStatus,
    GroupResult,
    ProjectResult,
    TokenResult,
)

__all__ = [
    "AccountResult",
    "CleanupOutcome",
    "CleanupPolicy",
    "CleanupReport",
    "CleanupStatus",
    "CompositeObserver",
    "EventLevel",
    "GroupResult",
    "LoggingObserver",
    "NullObserver",
    "Observer",
    "PrefixSelection",
    "ProjectResult",
    "ResourceOrchestrator",
    "StepEvent",
    "TokenResult",
    "account_age_days",
    "delete_by_prefix",
    "list_accounts",
    "poll_until",
    "select_prefix_matches",
]
