"""Account approval for administrators: list users, approve, revoke."""
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import List

from supabase import Client

from fieldops.models.profile import PendingUser, Profile

logger = logging.getLogger(__name__)


class AdminError(RuntimeError):
    """Raised when a profile read or update fails."""


class SelfRevocationError(AdminError):
    """Raised when an administrator tries to revoke their own access."""


@dataclass
class UserStats:
    total: int
    approved: int
    pending: int


class AdminService:
    def __init__(
        self,
        client: Client,
        profiles_table: str = "profiles",
        pending_table: str = "pending_users",
    ):
        self._client = client
        self._profiles = profiles_table
        self._pending = pending_table

    def list_pending(self) -> List[PendingUser]:
        """Users awaiting approval, oldest first."""
        try:
            response = (
                self._client.table(self._pending)
                .select("*")
                .order("created_at")
                .execute()
            )
        except Exception as exc:
            logger.error("Error listing pending users: %s", exc)
            raise AdminError(str(exc)) from exc
        return [PendingUser(**row) for row in response.data or []]

    def list_users(self) -> List[Profile]:
        """All profiles, newest first."""
        try:
            response = (
                self._client.table(self._profiles)
                .select("*")
                .order("created_at", desc=True)
                .execute()
            )
        except Exception as exc:
            logger.error("Error listing users: %s", exc)
            raise AdminError(str(exc)) from exc
        return [Profile(**row) for row in response.data or []]

    def approve(self, user_id: str) -> None:
        approved_at = datetime.now(timezone.utc).isoformat()
        self._update(user_id, {"approved": True, "approved_at": approved_at})
        logger.info("User %s approved", user_id)

    def revoke(self, user_id: str, acting_user_id: str) -> None:
        if user_id == acting_user_id:
            raise SelfRevocationError("Você não pode revogar seu próprio acesso.")
        self._update(user_id, {"approved": False, "approved_at": None})
        logger.info("Access revoked for user %s", user_id)

    def stats(self) -> UserStats:
        users = self.list_users()
        pending = self.list_pending()
        return UserStats(
            total=len(users),
            approved=sum(1 for u in users if u.approved),
            pending=len(pending),
        )

    def _update(self, user_id: str, fields: dict) -> None:
        try:
            (
                self._client.table(self._profiles)
                .update(fields)
                .eq("id", user_id)
                .execute()
            )
        except Exception as exc:
            logger.error("Error updating profile %s: %s", user_id, exc)
            raise AdminError(str(exc)) from exc
