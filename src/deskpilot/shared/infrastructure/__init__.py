"""
Infrastructure Layer
=====================

Low-level technical concerns shared by every module:
- Logging setup
- Rate limiting and background maintenance jobs
"""
