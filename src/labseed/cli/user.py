"""
CLI commands for GitLab account provisioning.

Commands:
    labseed user create -f users.yaml [-o out.yaml] [-t tmpl.j2]  - Provision accounts from a spec
    labseed user cleanup -f users.yaml [--days-old N]             - Tear down accounts from a spec
    labseed user delete --username a,b                           - Delete accounts by name
    labseed user list [--prefix P]                               - List accounts
    labseed user delete-by-prefix --prefix P [--dry-run]         - Delete accounts by username prefix

Every command verifies the token belongs to an administrator before doing
anything else, and returns 0 on success or 1 on failure.
"""

from __future__ import annotations

import argparse
from typing import Optional

from labseed.cli.ux import ConsoleObserver, console, error, header, info, print_table, success, warning
from labseed.config import resolve_credentials
from labseed.errors import LabseedError
from labseed.gateway import GitLabGateway
from labseed.logging import bind_context
from labseed.orchestrator import (
    CleanupReport,
    CleanupStatus,
    LoggingObserver,
    Observer,
    ResourceOrchestrator,
    delete_by_prefix,
    list_accounts,
)
from labseed.render import build_output, write_output
from labseed.specs import load_spec_file

DEFAULT_DAYS_OLD = 2


def connect(host: Optional[str] = None, token: Optional[str] = None) -> GitLabGateway:
    """
    Build a gateway and verify the token has administrator rights.

    Raises:
        ConfigurationError: If the host or token is missing
        AuthenticationError: If the token is rejected
        AuthorizationError: If the token's user is not an admin
    """
    credentials = resolve_credentials(host, token)
    gateway = GitLabGateway(
        credentials.url,
        credentials.token,
        timeout=credentials.timeout,
        per_page=credentials.per_page,
    )
    try:
        admin = gateway.ensure_admin()
    except LabseedError:
        gateway.close()
        raise
    success(f"Connected to {credentials.url} as admin '{admin.username}'")
    return gateway


def make_observer(log_format: str = "console", verbose: bool = False) -> Observer:
    """Console output for humans, structured log records for ``--log-format json``."""
    if log_format == "json":
        return LoggingObserver()
    return ConsoleObserver(verbose=verbose)


def build_orchestrator(gateway: GitLabGateway, observer: Observer) -> ResourceOrchestrator:
    return ResourceOrchestrator(gateway, observer)


def _print_cleanup_summary(report: CleanupReport, title: str) -> None:
    console.print()
    success(f"{title}: {report.deleted} deleted, {report.skipped} skipped, {report.failed} failed")
    for outcome in report.outcomes:
        if outcome.reason and outcome.status is not CleanupStatus.DELETED:
            console.print(f"  [muted]{outcome.username}: {outcome.status.value} ({outcome.reason})[/muted]")


def user_create_command(
    spec_file: str,
    output: Optional[str] = None,
    template: Optional[str] = None,
    *,
    host: Optional[str] = None,
    token: Optional[str] = None,
    verbose: bool = False,
    log_format: str = "console",
) -> int:
    """
    Provision every account in the provisioning file.

    Exit codes:
        0 - All accounts provisioned (individual groups/projects may have warnings)
        1 - Configuration, spec, authentication or account creation failure

    Args:
        spec_file: Path to the provisioning spec
        output: Optional output document path
        template: Optional Jinja2 template used to render the output document
        host: GitLab URL (falls back to GITLAB_URL)
        token: Admin token (falls back to GITLAB_TOKEN)
        verbose: Show every step
        log_format: "console" or "json"

    Returns:
        Exit code
    """
    header("Provision GitLab accounts")
    if template and not output:
        error("--template requires --output")
        return 1

    try:
        gateway = connect(host, token)
    except LabseedError as e:
        error(str(e))
        return 1

    try:
        spec = load_spec_file(spec_file)
        info(f"Found {len(spec.accounts)} user(s) in {spec_file}")

        orchestrator = build_orchestrator(gateway, make_observer(log_format, verbose))
        results = orchestrator.create_accounts(spec.accounts)

        console.print()
        success(f"Batch creation complete ({len(results)} user(s))")
        for result in results:
            for problem in result.errors:
                warning(f"{result.username}: {problem}")

        if output:
            document = build_output(gateway.base_url, results)
            path = write_output(output, document, template)
            success(f"Results saved to {path}")
    except LabseedError as e:
        error(str(e))
        return 1
    finally:
        gateway.close()

    return 0


def user_cleanup_command(
    spec_file: str,
    days_old: int = DEFAULT_DAYS_OLD,
    *,
    host: Optional[str] = None,
    token: Optional[str] = None,
    verbose: bool = False,
    log_format: str = "console",
) -> int:
    """
    Tear down every account in the provisioning file along with its groups and projects.

    Accounts younger than ``days_old`` days are skipped; 0 disables the check.
    Returns 1 if any account could not be processed.
    """
    header("Clean up GitLab accounts")
    try:
        gateway = connect(host, token)
    except LabseedError as e:
        error(str(e))
        return 1

    try:
        spec = load_spec_file(spec_file)
        info(f"Found {len(spec.accounts)} user(s) in {spec_file}")
        if days_old > 0:
            info(f"Only deleting users created more than {days_old} day(s) ago")
        else:
            info("Deleting all matching users regardless of creation date")

        orchestrator = build_orchestrator(gateway, make_observer(log_format, verbose))
        report = orchestrator.cleanup_accounts(spec.accounts, days_old=days_old)
    except LabseedError as e:
        error(str(e))
        return 1
    finally:
        gateway.close()

    _print_cleanup_summary(report, "Cleanup complete")
    return 1 if report.failed else 0


def user_delete_command(
    usernames: str,
    *,
    host: Optional[str] = None,
    token: Optional[str] = None,
    verbose: bool = False,
    log_format: str = "console",
) -> int:
    """Delete the comma-separated accounts and every group they own."""
    header("Delete GitLab accounts")
    names = [name.strip() for name in usernames.split(",") if name.strip()]
    if not names:
        error("No usernames given")
        return 1

    try:
        gateway = connect(host, token)
    except LabseedError as e:
        error(str(e))
        return 1

    try:
        info(f"Deleting {len(names)} user(s): {', '.join(names)}")
        orchestrator = build_orchestrator(gateway, make_observer(log_format, verbose))
        report = orchestrator.delete_accounts(names)
    finally:
        gateway.close()

    _print_cleanup_summary(report, "Deletion complete")
    return 1 if report.failed else 0


def user_list_command(
    prefix: Optional[str] = None,
    *,
    host: Optional[str] = None,
    token: Optional[str] = None,
) -> int:
    """
    List accounts, optionally narrowed by a search term.

    The term is matched as a substring of username, name or email.
    """
    header("GitLab accounts")
    try:
        gateway = connect(host, token)
    except LabseedError as e:
        error(str(e))
        return 1

    try:
        if prefix:
            info(f"Search term: {prefix}")
        accounts = list_accounts(gateway, prefix or "")
    except LabseedError as e:
        error(str(e))
        return 1
    finally:
        gateway.close()

    rows = [
        [
            str(account.id),
            account.username,
            account.name,
            account.email,
            "yes" if account.is_admin else "no",
            account.created_at.strftime("%Y-%m-%d") if account.created_at else "-",
        ]
        for account in accounts
    ]
    print_table(
        f"{len(accounts)} user(s)",
        ["ID", "Username", "Name", "Email", "Admin", "Created"],
        rows,
    )
    return 0


def user_delete_by_prefix_command(
    prefix: str,
    dry_run: bool = False,
    days_old: int = DEFAULT_DAYS_OLD,
    *,
    host: Optional[str] = None,
    token: Optional[str] = None,
    verbose: bool = False,
    log_format: str = "console",
) -> int:
    """
    Delete every account whose username starts with ``prefix``.

    With ``dry_run`` the matching accounts are listed and nothing is deleted.
    """
    header(f"Delete accounts with prefix '{prefix}'")
    if not prefix:
        error("A non-empty --prefix is required")
        return 1

    try:
        gateway = connect(host, token)
    except LabseedError as e:
        error(str(e))
        return 1

    try:
        orchestrator = build_orchestrator(gateway, make_observer(log_format, verbose))
        selection, report = delete_by_prefix(orchestrator, prefix, days_old=days_old, dry_run=dry_run)
    except LabseedError as e:
        error(str(e))
        return 1
    finally:
        gateway.close()

    if not selection.matched:
        info(f"No users to delete with prefix '{prefix}'")
        if selection.filtered_out:
            marker = "[DRY-RUN] " if dry_run else ""
            info(f"{marker}{selection.filtered_out} user(s) filtered out by the age threshold")
        return 0

    if dry_run:
        print_table(
            f"[DRY-RUN] {len(selection.matched)} user(s) would be deleted",
            ["ID", "Username", "Name", "Email"],
            [[str(a.id), a.username, a.name, a.email] for a in selection.matched],
        )
        if selection.filtered_out:
            info(f"[DRY-RUN] {selection.filtered_out} user(s) filtered out by the age threshold")
        return 0

    _print_cleanup_summary(report, "Batch deletion complete")
    return 1 if report.failed else 0


def register_user_parser(subparsers: argparse._SubParsersAction, common: argparse.ArgumentParser) -> None:
    """Register the ``user`` command with its nested subcommands."""
    user_parser = subparsers.add_parser("user", help="Manage GitLab users and their resources")
    user_subparsers = user_parser.add_subparsers(dest="user_command", help="User subcommand")

    create_parser = user_subparsers.add_parser(
        "create",
        parents=[common],
        help="Create users, tokens, groups and projects from a spec file",
    )
    create_parser.add_argument("-f", "--file", dest="spec_file", required=True, help="Path to the provisioning YAML file")
    create_parser.add_argument("-o", "--output", help="Write the results to this file")
    create_parser.add_argument("-t", "--template", help="Jinja2 template used to render the output file")

    cleanup_parser = user_subparsers.add_parser(
        "cleanup",
        parents=[common],
        help="Delete users and their resources listed in a spec file",
    )
    cleanup_parser.add_argument("-f", "--file", dest="spec_file", required=True, help="Path to the provisioning YAML file")
    cleanup_parser.add_argument(
        "--days-old",
        type=int,
        default=DEFAULT_DAYS_OLD,
        help=f"Only delete users created more than N days ago, 0 disables the check (default: {DEFAULT_DAYS_OLD})",
    )

    delete_parser = user_subparsers.add_parser(
        "delete",
        parents=[common],
        help="Delete users by name, including every group they own",
    )
    delete_parser.add_argument("--username", required=True, help="Comma-separated usernames")

    list_parser = user_subparsers.add_parser("list", parents=[common], help="List users")
    list_parser.add_argument("--prefix", help="Search term (substring of username, name or email)")

    prefix_parser = user_subparsers.add_parser(
        "delete-by-prefix",
        parents=[common],
        help="Delete every user whose username starts with a prefix",
    )
    prefix_parser.add_argument("--prefix", required=True, help="Username prefix")
    prefix_parser.add_argument("--dry-run", action="store_true", help="Show what would be deleted")
    prefix_parser.add_argument(
        "--days-old",
        type=int,
        default=DEFAULT_DAYS_OLD,
        help=f"Only delete users created more than N days ago, 0 disables the check (default: {DEFAULT_DAYS_OLD})",
    )


def handle_user_command(args: argparse.Namespace) -> int:
    """Dispatch ``labseed user <command>``."""
    user_cmd = getattr(args, "user_command", None)
    bind_context(command=f"user {user_cmd}")
    connection = {"host": getattr(args, "host", None), "token": getattr(args, "token", None)}
    output_options = {
        "verbose": getattr(args, "verbose", False),
        "log_format": getattr(args, "log_format", "console"),
    }

    if user_cmd == "create":
        return user_create_command(
            args.spec_file,
            output=args.output,
            template=args.template,
            **connection,
            **output_options,
        )
    elif user_cmd == "cleanup":
        return user_cleanup_command(args.spec_file, days_old=args.days_old, **connection, **output_options)
    elif user_cmd == "delete":
        return user_delete_command(args.username, **connection, **output_options)
    elif user_cmd == "list":
        return user_list_command(prefix=args.prefix, **connection)
    elif user_cmd == "delete-by-prefix":
        return user_delete_by_prefix_command(
            args.prefix,
            dry_run=args.dry_run,
            days_old=args.days_old,
            **connection,
            **output_options,
        )
    else:
        error("No user subcommand specified. Use --help for usage.")
        return 2
