"""
Access guard dependencies
"""
from typing import Callable, Optional

from fastapi import Depends

from learning_core.services import access_service
from learning_core.services.access_service import Capability
from learning_core.services.auth_service import AuthService, Identity


def require(capability: Capability) -> Callable[..., Identity]:
    """
    Build a dependency that resolves the caller and checks one capability.

    Example:
        @router.post("/{task_id}/submit")
        async def submit(identity: Identity = Depends(require(Capability.SUBMIT_TASK))):
            ...
    """

    def dependency(identity: Optional[Identity] = Depends(AuthService.get_optional_identity)) -> Identity:
        return access_service.check(identity, capability)

    return dependency
