from functools import lru_cache

from fastapi import Depends

from preflight.core.config import settings
from preflight.engine.policy import PolicyTable
from preflight.services.preflight_service import PreflightService


@lru_cache(maxsize=1)
def get_preflight_service() -> PreflightService:
    """
    Service dependency for preflight flows.
    Stateless across runs, so one instance per process is shared.
    Override with app.dependency_overrides in tests to inject fake tool runners.
    """
    return PreflightService.from_settings(settings)


def get_policy_table(svc: PreflightService = Depends(get_preflight_service)) -> PolicyTable:
    return svc.policies
