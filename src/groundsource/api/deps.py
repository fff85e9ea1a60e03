"""Dependency injection for FastAPI routes.

Provides singleton services shared by all requests.
"""

from functools import lru_cache
from typing import Annotated

from fastapi import Depends

from groundsource.services import ConfigService, GroundingService


@lru_cache
def get_config_service() -> ConfigService:
    """Get the singleton ConfigService instance."""
    return ConfigService()


@lru_cache
def get_grounding_service() -> GroundingService:
    """Get the singleton GroundingService instance.

    Owns the pipeline and its result cache, so it must live across requests.
    """
    config = get_config_service().load()
    return GroundingService.create_default(config)


GroundingServiceDep = Annotated[GroundingService, Depends(get_grounding_service)]
