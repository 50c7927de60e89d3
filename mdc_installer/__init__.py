"""Micro Data Center public installer (Python-first, idempotent).

Core design goals:
- Every step inspects the host and only changes what differs
- Safe to re-run at any point
- One manual pause: registering the deploy key
- Centralized logging and a persisted run record
"""

__all__ = []
