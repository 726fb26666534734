"""
Shared Kernel Module
====================

Shared infrastructure and API elements used by the triage bounded context
and the application entry point.

DO NOT add ticket pipeline logic to the shared kernel.
"""

__version__ = "1.0.0"
