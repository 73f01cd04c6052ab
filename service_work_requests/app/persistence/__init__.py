"""
Persistence layer for the Work Requests service (asyncpg, read-only).
"""

from .postgres import WorkRequestRepository

__all__ = ["WorkRequestRepository"]
