"""
Provisioning module - Account creation and status management.
"""

from portal.modules.provisioning.router import router

__all__ = ["router"]
