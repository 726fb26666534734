"""
Shared API
==========

Middleware, exception handlers and request guards used by every router.
"""
