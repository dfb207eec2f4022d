"""
Core settings, logging and error types.
"""
from .config import ProviderCredentials, Settings
from .errors import ErrorCode, StagingError

__all__ = [
    "ErrorCode",
    "ProviderCredentials",
    "Settings",
    "StagingError",
]
