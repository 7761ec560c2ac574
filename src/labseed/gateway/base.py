from __future__ import annotations

from typing import Protocol

from labseed.gateway.models import Account, Group, Project


class Gateway(Protocol):
    """
    Contract the orchestrator consumes from the remote platform.

    Lookups return None when the entity does not exist and raise
    GatewayError for every other failure. Mutations raise GatewayError.
    """

    def current_user(self) -> Account:
        ...

    def current_user_is_admin(self) -> bool:
        ...

    def lookup_account(self, username: str) -> Account | None:
        ...

    def create_account(self, username: str, email: str, name: str, password: str) -> Account:
        ...

    def unblock_account(self, account_id: int) -> None:
        ...

    def approve_account(self, account_id: int) -> None:
        ...

    def delete_account(self, account_id: int) -> None:
        ...

    def list_accounts(self, search: str = "") -> list[Account]:
        ...

    def create_token(self, account_id: int, name: str, scopes: list[str], expires_at: str) -> str:
        ...

    def lookup_group(self, path: str) -> Group | None:
        ...

    def create_group(self, owner: str, name: str, path: str, visibility: str) -> Group:
        ...

    def delete_group(self, group_id: int) -> None:
        ...

    def list_owned_groups(self, owner: str) -> list[Group]:
        ...

    def lookup_project(self, full_path: str) -> Project | None:
        ...

    def create_project(
        self,
        owner: str,
        namespace_id: int,
        name: str,
        path: str,
        description: str,
        visibility: str,
    ) -> Project:
        ...

    def delete_project(self, project_id: int) -> None:
        ...
