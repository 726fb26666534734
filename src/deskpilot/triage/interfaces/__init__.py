"""
Triage Interfaces Layer
========================

FastAPI routers and dependencies for the ticket processing pipeline.
"""

from deskpilot.triage.interfaces.controllers import webhook_router, api_router, admin_router
from deskpilot.triage.interfaces.dependencies import TriageServices

__all__ = ["webhook_router", "api_router", "admin_router", "TriageServices"]
