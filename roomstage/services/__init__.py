"""
Staging pipeline services.
"""
from .staging_service import StagingService, create_staging_service

__all__ = [
    "StagingService",
    "create_staging_service",
]
