"""
Client side of the query/health API.
"""

from .api import ClientError, DatabaseClient, backoff_delay
from .status import ConnectivityState, StatusReporter

__all__ = [
    "DatabaseClient",
    "ClientError",
    "backoff_delay",
    "ConnectivityState",
    "StatusReporter",
]
