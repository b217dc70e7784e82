"""Job clients: the remote backend the synchronizer polls."""

from .http_client import HttpJobClient
from .interfaces import JobClient
from .mock import MockJobBackend, MockJobClient

__all__ = ["HttpJobClient", "JobClient", "MockJobBackend", "MockJobClient"]
