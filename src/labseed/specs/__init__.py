"""
Provisioning spec models and loader.
"""

from labseed.specs.loader import load_spec_file, parse_spec
from labseed.specs.models import AccountSpec, GroupSpec, ProjectSpec, ProvisioningSpec, TokenSpec

__all__ = [
    "AccountSpec",
    "GroupSpec",
    "ProjectSpec",
    "ProvisioningSpec",
    "TokenSpec",
    "load_spec_file",
    "parse_spec",
]
