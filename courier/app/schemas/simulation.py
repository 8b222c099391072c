"""
Simulation tick schemas.
"""

from pydantic import BaseModel
from datetime import datetime


class TickResponse(BaseModel):
    """Summary of one reconcile tick."""
    ran_at: datetime
    updated_count: int
    total_candidates: int
    unchanged_count: int
    failed_count: int
    deferred_count: int
