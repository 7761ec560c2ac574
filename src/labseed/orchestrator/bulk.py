"""
Bulk account operations: listing and deletion by username prefix.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime

from labseed.errors import GatewayError
from labseed.gateway.base import Gateway
from labseed.gateway.models import Account
from labseed.orchestrator.engine import ResourceOrchestrator, account_age_days
from labseed.orchestrator.events import EventLevel, StepEvent
from labseed.orchestrator.results import CleanupOutcome, CleanupReport, CleanupStatus
from labseed.specs.models import AccountSpec


@dataclass
class PrefixSelection:
    """Accounts chosen for deletion and the ones filtered out by age."""

    matched: list[Account] = field(default_factory=list)
    too_recent: list[Account] = field(default_factory=list)
    unknown_age: list[Account] = field(default_factory=list)

    @property
    def filtered_out(self) -> int:
        return len(self.too_recent) + len(self.unknown_age)


def list_accounts(gateway: Gateway, search: str = "") -> list[Account]:
    """Every account whose username, name or email contains ``search``."""
    return gateway.list_accounts(search)


def select_prefix_matches(
    accounts: list[Account],
    prefix: str,
    days_old: int,
    now: datetime,
) -> PrefixSelection:
    """
    Keep accounts whose username starts with ``prefix``.

    With ``days_old`` > 0, accounts younger than that many days are dropped,
    as are accounts without a recorded creation time.
    """
    selection = PrefixSelection()
    for account in accounts:
        if not account.username.startswith(prefix):
            continue
        if days_old <= 0:
            selection.matched.append(account)
            continue

        age = account_age_days(account, now)
        if age is None:
            selection.unknown_age.append(account)
        elif age < days_old:
            selection.too_recent.append(account)
        else:
            selection.matched.append(account)
    return selection


def delete_by_prefix(
    orchestrator: ResourceOrchestrator,
    prefix: str,
    *,
    days_old: int = 0,
    dry_run: bool = False,
) -> tuple[PrefixSelection, CleanupReport]:
    """
    Delete every account whose username starts with ``prefix``.

    Each survivor goes through the full cleanup path, one at a time; a
    failure on one account is recorded and the next one is processed.
    In dry-run mode nothing is deleted and the report is empty.

    Returns:
        (selection, report)

    Raises:
        GatewayError: If the account listing fails
    """
    emit = orchestrator.observer.on_step
    accounts = list_accounts(orchestrator.gateway, prefix)
    selection = select_prefix_matches(accounts, prefix, days_old, orchestrator.clock())

    for account in selection.unknown_age:
        emit(
            StepEvent(
                "account_age_unknown",
                f"Skipping {account.username}: creation time unknown",
                EventLevel.WARNING,
                {"username": account.username},
            )
        )
    for account in selection.too_recent:
        emit(
            StepEvent(
                "account_too_recent",
                f"Skipping {account.username}: created less than {days_old} day(s) ago",
                fields={"username": account.username},
            )
        )

    emit(
        StepEvent(
            "prefix_selected",
            f"{len(selection.matched)} account(s) match prefix '{prefix}'"
            f" ({selection.filtered_out} filtered out by age)",
            fields={"prefix": prefix, "matched": len(selection.matched), "filtered_out": selection.filtered_out},
        )
    )

    report = CleanupReport()
    if dry_run:
        return selection, report

    for index, account in enumerate(selection.matched, start=1):
        emit(
            StepEvent(
                "cleanup_started",
                f"Processing [{index}/{len(selection.matched)}]: {account.username}",
                fields={"username": account.username, "index": index, "total": len(selection.matched)},
            )
        )
        try:
            outcome = orchestrator.cleanup_account(AccountSpec.bare(account.username))
        except GatewayError as exc:
            emit(
                StepEvent(
                    "cleanup_failed",
                    f"Error while processing user {account.username}: {exc}",
                    EventLevel.ERROR,
                    {"username": account.username, "error": str(exc)},
                )
            )
            outcome = CleanupOutcome(account.username, CleanupStatus.FAILED, account_id=account.id, reason=str(exc))
        report.outcomes.append(outcome)

    return selection, report
