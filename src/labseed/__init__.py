"""
labseed - bulk provisioning and teardown of GitLab users, groups and projects.
"""

__version__ = "0.2.0"
