"""
Type definitions for the egress worker.
Contains input/output type definitions shared across modules.
"""

from egress_worker.types.address import AddressRecord
from egress_worker.types.job import JobContext, JobEnvelope

__all__ = [
    # Address types
    "AddressRecord",
    # Job types
    "JobEnvelope",
    "JobContext",
]
