"""
Runtime-owned persistence models and bulk SQL helpers.
"""

from sessions_core.persistence.bulk import bulk_insert, bulk_update
from sessions_core.persistence.models import Contact, Msg, ProcessedBatch, RuntimeBase

__all__ = [
    "Contact",
    "Msg",
    "ProcessedBatch",
    "RuntimeBase",
    "bulk_insert",
    "bulk_update",
]
