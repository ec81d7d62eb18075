"""FastAPI dependencies: shared services and the approved/admin route guards."""
from typing import Any, Optional

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from fieldops.admin.service import AdminService
from fieldops.auth.service import AuthService, build_auth_client
from fieldops.config import get_settings
from fieldops.models.profile import Profile
from fieldops.sync.engine import ActivitySyncEngine

_bearer = HTTPBearer(auto_error=False)

_auth_service: Optional[AuthService] = None
_admin_service: Optional[AdminService] = None


def get_sync_engine(request: Request) -> ActivitySyncEngine:
    """The app-wide engine created in the lifespan handler."""
    return request.app.state.sync_engine


def get_auth_service() -> AuthService:
    global _auth_service
    if _auth_service is None:
        from fieldops.store.supabase_store import build_client

        settings = get_settings()
        _auth_service = AuthService(
            build_client(settings),
            auth_client=build_auth_client(settings),
            profiles_table=settings.profiles_table,
        )
    return _auth_service


def get_admin_service() -> AdminService:
    global _admin_service
    if _admin_service is None:
        from fieldops.store.supabase_store import build_client

        settings = get_settings()
        _admin_service = AdminService(
            build_client(settings),
            profiles_table=settings.profiles_table,
            pending_table=settings.pending_users_table,
        )
    return _admin_service


def require_token(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(_bearer),
) -> str:
    """The raw bearer token, or 401."""
    if credentials is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated")
    return credentials.credentials


def require_user(
    token: str = Depends(require_token),
    auth: AuthService = Depends(get_auth_service),
) -> Any:
    """A valid (not necessarily approved) user for the bearer token, or 401."""
    user = auth.get_user(token)
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid or expired token"
        )
    return user


def require_approved(
    user: Any = Depends(require_user),
    auth: AuthService = Depends(get_auth_service),
) -> Profile:
    """Bearer token -> user -> approved profile, or 401/403."""
    profile = auth.fetch_profile(user.id)
    if profile is None or not profile.approved:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Access pending approval")
    return profile


def require_admin(profile: Profile = Depends(require_approved)) -> Profile:
    if not profile.is_admin:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Admin only")
    return profile
