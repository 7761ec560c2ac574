"""
Remote platform gateway.
"""

from labseed.gateway.base import Gateway
from labseed.gateway.client import GitLabGateway
from labseed.gateway.models import Account, Group, Project

__all__ = ["Account", "Gateway", "GitLabGateway", "Group", "Project"]
