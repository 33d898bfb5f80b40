"""
Client Package — submission history and the analyze HTTP client

Public API::

    from paper_checker.client import AnalysisClient, ClientSubmissionStore
"""

from paper_checker.client.api_client import AnalysisClient, AnalysisRequestError
from paper_checker.client.store import (
    ClientSubmissionStore,
    InMemoryStorage,
    JsonFileStorage,
)

__all__ = [
    "AnalysisClient",
    "AnalysisRequestError",
    "ClientSubmissionStore",
    "InMemoryStorage",
    "JsonFileStorage",
]
