"""
Resource lifecycle orchestrator.

Walks the declared tree account -> groups -> projects, applies the naming
policy, creates whatever the lookup step does not find and threads the
resulting IDs and paths down to children. Cleanup mirrors creation in
reverse (projects, groups, remaining owned groups, account) and verifies
deletions with bounded polling because GitLab removes groups and users
asynchronously.

Everything runs sequentially. Failures below the account level are
reported and skipped, an account that can be neither found nor created
aborts the run.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Iterable

from labseed.errors import AccountProvisioningError, GatewayError
from labseed.gateway.base import Gateway
from labseed.gateway.models import Account, Group, Project
from labseed.naming import (
    IdentifierKind,
    NamingMode,
    default_token_expiry,
    resolve_effective,
    resolve_email,
    resolve_identifier,
    resolve_visibility,
    token_name,
)
from labseed.orchestrator.events import EventLevel, NullObserver, Observer, StepEvent
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
from labseed.specs.models import AccountSpec, GroupSpec, ProjectSpec, TokenSpec


@dataclass(frozen=True)
class CleanupPolicy:
    """Retry caps and settle intervals (seconds) used during teardown."""

    group_verify_attempts: int = 6
    group_verify_interval: float = 5.0
    owned_groups_attempts: int = 10
    owned_groups_interval: float = 5.0
    settle_interval: float = 10.0
    account_verify_delay: float = 10.0


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def account_age_days(account: Account, now: datetime) -> int | None:
    """Whole days since the account was created, None when unknown."""
    if account.created_at is None:
        return None
    created = account.created_at
    if created.tzinfo is None:
        created = created.replace(tzinfo=timezone.utc)
    return int((now - created).total_seconds() // 86400)


class ResourceOrchestrator:
    """
    Creates and tears down accounts, groups, projects and tokens.

    Args:
        gateway: Platform gateway
        observer: Receives a StepEvent for every step (defaults to a no-op)
        clock: Returns the current time, used for naming and age checks
        sleep: Blocking sleep, injectable for tests
        policy: Retry caps and settle intervals for cleanup
    """

    def __init__(
        self,
        gateway: Gateway,
        observer: Observer | None = None,
        *,
        clock: Callable[[], datetime] = _utcnow,
        sleep: Callable[[float], None] = time.sleep,
        policy: CleanupPolicy | None = None,
    ) -> None:
        self.gateway = gateway
        self.observer = observer or NullObserver()
        self.clock = clock
        self.sleep = sleep
        self.policy = policy or CleanupPolicy()

    def _emit(self, action: str, message: str, level: EventLevel = EventLevel.INFO, **fields) -> None:
        self.observer.on_step(StepEvent(action=action, message=message, level=level, fields=fields))

    # === Create path ===

    def create_accounts(self, specs: Iterable[AccountSpec]) -> list[AccountResult]:
        """
        Provision every account in order.

        Raises:
            AccountProvisioningError: On the first account that cannot be
                found or created; later accounts are not processed
        """
        specs = list(specs)
        results = []
        for index, spec in enumerate(specs, start=1):
            self._emit(
                "account_started",
                f"Processing user [{index}/{len(specs)}]: {spec.username}",
                username=spec.username,
                index=index,
                total=len(specs),
            )
            result = self.create_account(spec)
            results.append(result)
            self._emit(
                "account_completed",
                f"User '{result.username}' processed",
                EventLevel.SUCCESS,
                username=result.username,
                errors=len(result.errors),
            )
        return results

    def create_account(self, spec: AccountSpec) -> AccountResult:
        """
        Provision one account and everything beneath it.

        Raises:
            AccountProvisioningError: If the account lookup or creation fails
        """
        mode = resolve_effective(spec.naming_mode, None)
        now = self.clock()
        username = resolve_identifier(mode, spec.username, kind=IdentifierKind.USERNAME, now=now)
        email = resolve_email(mode, spec.email, now=now)
        self._emit(
            "naming_resolved",
            f"Using {mode.value} mode: username={username} email={email}",
            username=username,
            email=email,
            mode=mode.value,
        )

        try:
            account, created = self.ensure_account(username, email, spec.display_name, spec.password)
        except GatewayError as exc:
            self._emit(
                "account_failed",
                f"Failed to create user {username}: {exc}",
                EventLevel.ERROR,
                username=username,
                error=str(exc),
            )
            raise AccountProvisioningError(username, exc) from exc

        result = AccountResult(
            username=username,
            email=email,
            name=spec.display_name,
            user_id=account.id,
            password=spec.password,
            created=created,
        )

        if spec.token is not None:
            result.token = self._issue_token(account, username, spec.token, result)

        if spec.groups:
            self._emit("groups_started", f"Creating {len(spec.groups)} group(s)", count=len(spec.groups))
            for index, group_spec in enumerate(spec.groups, start=1):
                self._emit(
                    "group_started",
                    f"Processing group [{index}/{len(spec.groups)}]: {group_spec.name}",
                    group=group_spec.name,
                )
                group_result = self._create_group(username, group_spec, mode, result)
                if group_result is not None:
                    result.groups.append(group_result)

        if spec.projects:
            self._emit(
                "user_projects_started",
                f"Creating {len(spec.projects)} user-level project(s)",
                count=len(spec.projects),
            )
            for project_spec in spec.projects:
                project_result = self._create_project(
                    owner=username,
                    namespace_id=account.id,
                    namespace_path=username,
                    spec=project_spec,
                    parent_mode=mode,
                    result=result,
                )
                if project_result is not None:
                    result.projects.append(project_result)

        return result

    def ensure_account(self, username: str, email: str, name: str, password: str) -> tuple[Account, bool]:
        """
        Find the account by username or create it.

        Returns:
            (account, created)

        Raises:
            GatewayError: If the lookup or the creation fails
        """
        existing = self.gateway.lookup_account(username)
        if existing is not None:
            self._emit(
                "account_reused",
                f"User '{username}' already exists (ID: {existing.id})",
                EventLevel.WARNING,
                username=username,
                user_id=existing.id,
            )
            return existing, False

        self._emit("account_creating", f"Creating user: {username}", username=username)
        account = self.gateway.create_account(username, email, name, password)

        # New accounts may start blocked or pending approval
        for action, call in (
            ("unblock", self.gateway.unblock_account),
            ("approve", self.gateway.approve_account),
        ):
            try:
                call(account.id)
            except GatewayError as exc:
                self._emit(
                    f"account_{action}_failed",
                    f"Failed to {action} user {username}: {exc}",
                    EventLevel.WARNING,
                    username=username,
                    error=str(exc),
                )

        self._emit(
            "account_created",
            f"User created (ID: {account.id})",
            EventLevel.SUCCESS,
            username=username,
            user_id=account.id,
        )
        return account, True

    def _issue_token(
        self,
        account: Account,
        username: str,
        spec: TokenSpec,
        result: AccountResult,
    ) -> TokenResult | None:
        now = self.clock()
        expires_at = spec.expires_at
        if not expires_at:
            expires_at = default_token_expiry(now)
            self._emit(
                "token_expiry_defaulted",
                f"No expiry given, using default: {expires_at}",
                expires_at=expires_at,
            )

        name = token_name(username, now)
        try:
            value = self.gateway.create_token(account.id, name, list(spec.scopes), expires_at)
        except GatewayError as exc:
            self._emit(
                "token_failed",
                f"Failed to create personal access token: {exc}",
                EventLevel.WARNING,
                username=username,
                error=str(exc),
            )
            result.errors.append(f"token: {exc}")
            return None

        self._emit(
            "token_created",
            f"Personal access token '{name}' created",
            EventLevel.SUCCESS,
            username=username,
            token_name=name,
        )
        return TokenResult(value=value, scopes=list(spec.scopes), expires_at=expires_at, name=name)

    def ensure_group(self, owner: str, name: str, path: str, visibility: str) -> tuple[Group, bool]:
        """
        Find the group by path or create it on behalf of ``owner``.

        An existing group is reused as-is, even if its attributes differ.
        """
        existing = self.gateway.lookup_group(path)
        if existing is not None:
            self._emit(
                "group_reused",
                f"Group '{existing.full_path}' already exists (ID: {existing.id})",
                EventLevel.WARNING,
                path=existing.full_path,
                group_id=existing.id,
            )
            return existing, False

        self._emit("group_creating", f"Creating group: {name} (path: {path})", path=path)
        group = self.gateway.create_group(owner, name, path, visibility)
        self._emit(
            "group_created",
            f"Group created (ID: {group.id}, Path: {group.full_path})",
            EventLevel.SUCCESS,
            path=group.full_path,
            group_id=group.id,
        )
        return group, True

    def _create_group(
        self,
        owner: str,
        spec: GroupSpec,
        parent_mode: NamingMode,
        result: AccountResult,
    ) -> GroupResult | None:
        mode = resolve_effective(spec.naming_mode, parent_mode)
        path = resolve_identifier(mode, spec.name, spec.path, now=self.clock())
        visibility = resolve_visibility(spec.visibility)

        try:
            group, created = self.ensure_group(owner, spec.name, path, visibility)
        except GatewayError as exc:
            self._emit(
                "group_failed",
                f"Failed to create group {path}: {exc}",
                EventLevel.WARNING,
                path=path,
                error=str(exc),
            )
            result.errors.append(f"group {path}: {exc}")
            return None

        group_result = GroupResult(
            name=spec.name,
            path=group.full_path,
            group_id=group.id,
            visibility=visibility,
            created=created,
        )

        for project_spec in spec.projects:
            project_result = self._create_project(
                owner=owner,
                namespace_id=group.id,
                namespace_path=group.full_path,
                spec=project_spec,
                parent_mode=mode,
                result=result,
            )
            if project_result is not None:
                group_result.projects.append(project_result)

        return group_result

    def ensure_project(
        self,
        owner: str,
        namespace_id: int,
        namespace_path: str,
        name: str,
        path: str,
        description: str,
        visibility: str,
    ) -> tuple[Project, bool]:
        """Find ``<namespace_path>/<path>`` or create it in ``namespace_id``."""
        full_path = f"{namespace_path}/{path}"
        existing = self.gateway.lookup_project(full_path)
        if existing is not None:
            self._emit(
                "project_reused",
                f"Project '{full_path}' already exists (ID: {existing.id})",
                EventLevel.WARNING,
                path=full_path,
                project_id=existing.id,
            )
            return existing, False

        self._emit("project_creating", f"Creating project: {name} (path: {full_path})", path=full_path)
        project = self.gateway.create_project(owner, namespace_id, name, path, description, visibility)
        self._emit(
            "project_created",
            f"Project created (ID: {project.id}, Path: {project.path_with_namespace})",
            EventLevel.SUCCESS,
            path=project.path_with_namespace,
            project_id=project.id,
        )
        return project, True

    def _create_project(
        self,
        *,
        owner: str,
        namespace_id: int,
        namespace_path: str,
        spec: ProjectSpec,
        parent_mode: NamingMode,
        result: AccountResult,
    ) -> ProjectResult | None:
        mode = resolve_effective(spec.naming_mode, parent_mode)
        path = resolve_identifier(mode, spec.name, spec.path, now=self.clock())
        visibility = resolve_visibility(spec.visibility)
        full_path = f"{namespace_path}/{path}"

        try:
            project, created = self.ensure_project(
                owner, namespace_id, namespace_path, spec.name, path, spec.description, visibility
            )
        except GatewayError as exc:
            self._emit(
                "project_failed",
                f"Failed to create project {full_path}: {exc}",
                EventLevel.WARNING,
                path=full_path,
                error=str(exc),
            )
            result.errors.append(f"project {full_path}: {exc}")
            return None

        return ProjectResult(
            name=spec.name,
            path=full_path,
            project_id=project.id,
            description=spec.description,
            visibility=visibility,
            web_url=project.web_url,
            created=created,
        )

    # === Cleanup path ===

    def cleanup_accounts(self, specs: Iterable[AccountSpec], days_old: int = 0) -> CleanupReport:
        """Tear down every account in order, continuing past per-account failures."""
        specs = list(specs)
        report = CleanupReport()
        for index, spec in enumerate(specs, start=1):
            self._emit(
                "cleanup_started",
                f"Processing [{index}/{len(specs)}]: {spec.username}",
                username=spec.username,
                index=index,
                total=len(specs),
            )
            try:
                outcome = self.cleanup_account(spec, days_old=days_old)
            except GatewayError as exc:
                self._emit(
                    "cleanup_failed",
                    f"Error while processing user {spec.username}: {exc}",
                    EventLevel.ERROR,
                    username=spec.username,
                    error=str(exc),
                )
                outcome = CleanupOutcome(spec.username, CleanupStatus.FAILED, reason=str(exc))
            report.outcomes.append(outcome)
        return report

    def delete_accounts(self, usernames: Iterable[str]) -> CleanupReport:
        """Delete accounts by name, including every group they own."""
        names = [name.strip() for name in usernames if name and name.strip()]
        return self.cleanup_accounts([AccountSpec.bare(name) for name in names])

    def cleanup_account(self, spec: AccountSpec, days_old: int = 0) -> CleanupOutcome:
        """
        Remove one account and its resources, children first.

        Paths are taken verbatim from the provisioning file (path, falling back to name).
        Verification timeouts only produce warnings.

        Raises:
            GatewayError: If the account lookup or the account deletion fails
        """
        username = spec.username
        account = self.gateway.lookup_account(username)
        if account is None:
            self._emit("account_absent", f"User does not exist, skipping: {username}", username=username)
            return CleanupOutcome(username, CleanupStatus.NOT_FOUND)

        if days_old > 0:
            reason = self._age_skip_reason(account, days_old)
            if reason:
                self._emit("account_too_recent", f"Skipping {username}: {reason}", EventLevel.WARNING, username=username)
                return CleanupOutcome(username, CleanupStatus.SKIPPED, account_id=account.id, reason=reason)

        self._emit(
            "account_found",
            f"Found user '{account.username}' (ID: {account.id}, email: {account.email})",
            username=username,
            user_id=account.id,
        )
        outcome = CleanupOutcome(username, CleanupStatus.DELETED, account_id=account.id)

        if spec.projects:
            self._emit(
                "user_projects_deleting",
                f"Deleting {len(spec.projects)} user-level project(s)",
                count=len(spec.projects),
            )
            for project_spec in spec.projects:
                self._delete_project(f"{username}/{project_spec.declared_path}", outcome)

        if spec.groups:
            self._emit("groups_deleting", f"Deleting {len(spec.groups)} group(s) and their projects", count=len(spec.groups))
            for group_spec in spec.groups:
                for project_spec in group_spec.projects:
                    self._delete_project(f"{group_spec.declared_path}/{project_spec.declared_path}", outcome)
                self._delete_group(group_spec.declared_path, outcome)

            if not self._verify_groups_deleted([group.declared_path for group in spec.groups]):
                message = "some configured groups may still exist"
                self._emit("groups_verify_timeout", f"Warning: {message}", EventLevel.WARNING, username=username)
                outcome.warnings.append(message)

        self._delete_owned_groups(username, outcome)

        self._emit(
            "settling",
            f"Waiting {self.policy.settle_interval:g}s for GitLab to settle",
            seconds=self.policy.settle_interval,
        )
        self.sleep(self.policy.settle_interval)

        self._delete_account(account, outcome)
        return outcome

    def _age_skip_reason(self, account: Account, days_old: int) -> str | None:
        age = account_age_days(account, self.clock())
        if age is None:
            return "creation time unknown"
        if age < days_old:
            return f"created {age} day(s) ago (threshold {days_old})"
        return None

    def _delete_project(self, full_path: str, outcome: CleanupOutcome) -> None:
        try:
            project = self.gateway.lookup_project(full_path)
        except GatewayError as exc:
            self._warn(outcome, "project_lookup_failed", f"Failed to look up project {full_path}: {exc}")
            return

        if project is None:
            self._emit("project_absent", f"Project does not exist, skipping: {full_path}", path=full_path)
            return

        try:
            self.gateway.delete_project(project.id)
        except GatewayError as exc:
            self._warn(outcome, "project_delete_failed", f"Failed to delete project {full_path}: {exc}")
            return
        self._emit(
            "project_deleted",
            f"Project deleted: {full_path} (ID: {project.id})",
            EventLevel.SUCCESS,
            path=full_path,
            project_id=project.id,
        )

    def _delete_group(self, path: str, outcome: CleanupOutcome) -> None:
        try:
            group = self.gateway.lookup_group(path)
        except GatewayError as exc:
            self._warn(outcome, "group_lookup_failed", f"Failed to look up group {path}: {exc}")
            return

        if group is None:
            self._emit("group_absent", f"Group does not exist, skipping: {path}", path=path)
            return

        self._delete_group_by_id(group, outcome)

    def _delete_group_by_id(self, group: Group, outcome: CleanupOutcome) -> None:
        try:
            self.gateway.delete_group(group.id)
        except GatewayError as exc:
            self._warn(outcome, "group_delete_failed", f"Failed to delete group {group.full_path}: {exc}")
            return
        self._emit(
            "group_deleted",
            f"Group deleted: {group.full_path} (ID: {group.id})",
            EventLevel.SUCCESS,
            path=group.full_path,
            group_id=group.id,
        )

    def _verify_groups_deleted(self, paths: list[str]) -> bool:
        attempts = self.policy.group_verify_attempts
        state = {"attempt": 0}

        def all_gone() -> bool:
            state["attempt"] += 1
            remaining = [path for path in paths if self._group_still_exists(path)]
            if not remaining:
                self._emit("groups_verified", "Configured groups are deleted", EventLevel.SUCCESS)
                return True
            self._emit(
                "groups_verify_pending",
                f"{len(remaining)} group(s) still present (attempt {state['attempt']}/{attempts})",
                remaining=remaining,
                attempt=state["attempt"],
            )
            return False

        return poll_until(all_gone, attempts, self.policy.group_verify_interval, sleep=self.sleep)

    def _group_still_exists(self, path: str) -> bool:
        try:
            return self.gateway.lookup_group(path) is not None
        except GatewayError as exc:
            # Unknown state counts as present so the poll keeps waiting
            self._emit("group_verify_error", f"Failed to check group {path}: {exc}", EventLevel.WARNING, path=path)
            return True

    def _delete_owned_groups(self, username: str, outcome: CleanupOutcome) -> None:
        self._emit("owned_groups_checking", "Checking whether the user owns other groups", username=username)
        try:
            groups = self.gateway.list_owned_groups(username)
        except GatewayError as exc:
            self._warn(outcome, "owned_groups_list_failed", f"Failed to list groups owned by {username}: {exc}")
            return

        if not groups:
            self._emit("owned_groups_none", "User owns no other groups", EventLevel.SUCCESS)
            return

        self._emit("owned_groups_deleting", f"User still owns {len(groups)} group(s), deleting", count=len(groups))
        for group in groups:
            self._delete_group_by_id(group, outcome)

        attempts = self.policy.owned_groups_attempts
        state = {"attempt": 0}

        def none_left() -> bool:
            state["attempt"] += 1
            try:
                remaining = self.gateway.list_owned_groups(username)
            except GatewayError as exc:
                self._emit("owned_groups_verify_error", f"Failed to list owned groups: {exc}", EventLevel.WARNING)
                return False
            if not remaining:
                self._emit("owned_groups_verified", "All groups owned by the user are deleted", EventLevel.SUCCESS)
                return True
            self._emit(
                "owned_groups_verify_pending",
                f"{len(remaining)} owned group(s) still present (attempt {state['attempt']}/{attempts})",
                remaining=[group.full_path for group in remaining],
                attempt=state["attempt"],
            )
            return False

        if not poll_until(none_left, attempts, self.policy.owned_groups_interval, sleep=self.sleep):
            self._warn(outcome, "owned_groups_verify_timeout", "Warning: some owned groups may still exist")

    def _delete_account(self, account: Account, outcome: CleanupOutcome) -> None:
        username = account.username
        self._emit("account_deleting", f"Deleting user: {username}", username=username)
        self.gateway.delete_account(account.id)
        self._emit("account_deleted", "User deletion accepted", EventLevel.SUCCESS, username=username)

        self.sleep(self.policy.account_verify_delay)
        try:
            remaining = self.gateway.lookup_account(username)
        except GatewayError as exc:
            self._warn(outcome, "account_verify_error", f"Could not verify deletion of {username}: {exc}")
            outcome.verified = False
            return

        outcome.verified = remaining is None
        if outcome.verified:
            self._emit("account_verified", "Verified: user is gone", EventLevel.SUCCESS, username=username)
        else:
            self._warn(outcome, "account_verify_failed", f"Verification failed: user {username} may still exist")

    def _warn(self, outcome: CleanupOutcome, action: str, message: str) -> None:
        outcome.warnings.append(message)
        self._emit(action, message, EventLevel.WARNING, username=outcome.username)
