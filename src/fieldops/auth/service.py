"""
Sign-in / sign-up against Supabase auth, gated by admin approval.

Every account has a row in `profiles` (approved flag + role). A user whose
profile is not approved can authenticate with Supabase but must not keep a
session: sign_in() signs them straight back out and reports reason
"PENDENTE".

Failures from Supabase are logged and returned as AuthResult(ok=False) with
the service's message; nothing here raises to the caller.

Two clients: `client` holds the service key and does every table read and
bearer-token lookup, `auth_client` holds the anon key and runs the user
flows. supabase-py attaches a signed-in user's JWT to the client that signed
them in, so profile reads never go through `auth_client`.
"""
import logging
from dataclasses import dataclass
from typing import Any, Callable, Optional

from supabase import Client, create_client

from fieldops.config import Settings, get_settings
from fieldops.models.profile import Profile

logger = logging.getLogger(__name__)

REASON_PENDING = "PENDENTE"

MSG_SIGNIN_OK = "Login realizado com sucesso!"
MSG_SIGNIN_ERROR = "Erro ao realizar login"
MSG_PENDING = "Seu acesso ainda não foi aprovado. Aguarde a liberação do administrador."
MSG_SIGNUP_OK = "Cadastro realizado! Aguarde aprovação do administrador para acessar."
MSG_SIGNUP_ERROR = "Erro ao realizar cadastro"


@dataclass
class AuthResult:
    ok: bool
    message: str
    reason: Optional[str] = None
    access_token: Optional[str] = None


@dataclass
class AuthState:
    """Session tracked from auth-state change notifications."""

    user: Any = None
    session: Any = None
    profile: Optional[Profile] = None

    @property
    def is_admin(self) -> bool:
        return self.profile is not None and self.profile.is_admin

    @property
    def is_approved(self) -> bool:
        return self.profile is not None and self.profile.approved


def build_auth_client(settings: Optional[Settings] = None) -> Client:
    """Supabase client with the anon key (user-facing auth flows)."""
    settings = settings or get_settings()
    return create_client(settings.supabase_url, settings.supabase_anon_key)


class AuthService:
    def __init__(
        self,
        client: Client,
        auth_client: Optional[Client] = None,
        profiles_table: str = "profiles",
    ):
        self._client = client
        self._auth_client = auth_client if auth_client is not None else client
        self._profiles = profiles_table
        self.state = AuthState()

    # ── Profiles ──────────────────────────────────────────────────────────────

    def fetch_profile(self, user_id: str) -> Optional[Profile]:
        """Load the profile row for a user; None if missing or on error."""
        try:
            response = (
                self._client.table(self._profiles)
                .select("*")
                .eq("id", user_id)
                .limit(1)
                .execute()
            )
        except Exception as exc:
            logger.error("Error fetching profile %s: %s", user_id, exc)
            return None
        if not response.data:
            return None
        return Profile(**response.data[0])

    def refresh_profile(self) -> Optional[Profile]:
        if self.state.user is None:
            return None
        self.state.profile = self.fetch_profile(self.state.user.id)
        return self.state.profile

    # ── Auth flows ────────────────────────────────────────────────────────────

    def sign_up(
        self, email: str, password: str, display_name: Optional[str] = None
    ) -> AuthResult:
        """Register a user and make sure a profile row exists for them."""
        try:
            response = self._auth_client.auth.sign_up({"email": email, "password": password})
            user = response.user
            if user is not None and user.id:
                # Without a profile row the account could never be approved
                (
                    self._client.table(self._profiles)
                    .upsert(
                        {
                            "id": user.id,
                            "email": user.email or email,
                            "display_name": display_name,
                        },
                        on_conflict="id",
                    )
                    .execute()
                )
        except Exception as exc:
            logger.error("Sign-up error: %s", exc)
            return AuthResult(ok=False, message=str(exc) or MSG_SIGNUP_ERROR)
        return AuthResult(ok=True, message=MSG_SIGNUP_OK)

    def sign_in(self, email: str, password: str) -> AuthResult:
        """Authenticate, then refuse (and sign out) unapproved accounts."""
        try:
            response = self._auth_client.auth.sign_in_with_password(
                {"email": email, "password": password}
            )
            user = response.user
            session = response.session
            rows = (
                self._client.table(self._profiles)
                .select("approved, role, display_name")
                .eq("id", user.id)
                .limit(1)
                .execute()
            ).data
        except Exception as exc:
            logger.error("Sign-in error: %s", exc)
            return AuthResult(ok=False, message=str(exc) or MSG_SIGNIN_ERROR)

        if not rows or not rows[0].get("approved"):
            logger.info("Sign-in refused for unapproved user %s", user.id)
            self.sign_out(getattr(session, "access_token", None))
            return AuthResult(ok=False, message=MSG_PENDING, reason=REASON_PENDING)

        self.state.user = user
        self.state.session = session
        self.state.profile = self.fetch_profile(user.id)
        return AuthResult(
            ok=True,
            message=MSG_SIGNIN_OK,
            access_token=getattr(session, "access_token", None),
        )

    def sign_out(self, access_token: Optional[str] = None) -> None:
        """End a session.

        With a token, that session is revoked server-side through the service
        client and no other user's session is touched. Without one, the
        auth client's own session is signed out.
        """
        try:
            if access_token:
                self._client.auth.admin.sign_out(access_token)
            else:
                self._auth_client.auth.sign_out()
        except Exception as exc:
            logger.error("Sign-out error: %s", exc)

        tracked = getattr(self.state.session, "access_token", None)
        if access_token is None or access_token == tracked:
            self.state = AuthState()

    def get_user(self, access_token: str) -> Any:
        """Resolve a bearer token to a user; None if invalid or expired."""
        try:
            response = self._client.auth.get_user(access_token)
        except Exception as exc:
            logger.warning("Token verification failed: %s", exc)
            return None
        if response is None:
            return None
        return response.user

    # ── Notifications ─────────────────────────────────────────────────────────

    def subscribe(self, callback: Optional[Callable[[str, AuthState], None]] = None):
        """
        Track auth-state transitions (sign in, token refresh, sign out).

        Args:
            callback: Called with (event, state) after the tracked state is
                      updated for each transition.

        Returns:
            The Supabase subscription; call unsubscribe() to stop.
        """

        def _on_change(event, session) -> None:
            self.state.session = session
            user = getattr(session, "user", None) if session else None
            self.state.user = user
            self.state.profile = self.fetch_profile(user.id) if user else None
            if callback is not None:
                callback(str(event), self.state)

        return self._auth_client.auth.on_auth_state_change(_on_change)
