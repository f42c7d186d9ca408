from fastapi import Depends, HTTPException, status
from fastapi_users import models

from .logging_config import get_log_config, LogConfig
from .services.content_store import ContentStore
from .settings.config import settings
from .users import current_active_user, current_optional_user


def get_content_store(log_config: LogConfig = Depends(get_log_config)) -> ContentStore:
    return ContentStore(settings.STORAGE_ROOT, log_config)


# Dependency to get the current user, or None for guests
async def get_current_user(
    user: models.UP = Depends(current_optional_user),
):
    return user


# Dependency to enforce authentication (non-admin user is OK)
async def require_authenticated_user(
    user: models.UP = Depends(current_active_user),
):
    if not user:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated")
    return user


async def require_admin_user(
    user: models.UP = Depends(current_active_user),
):
    if not user:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated")
    if not getattr(user, "is_admin", False):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Admin access required")
    return user
