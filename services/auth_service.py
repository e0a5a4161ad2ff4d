"""
Authentication.

AuthProvider does credential checks and token handling only; profile
rows (role, status) live in the `users` table and are joined in by
AuthService, which hands routes an explicit Operator.

Providers:
    SupabaseAuthProvider  Supabase Auth (email + password, JWT sessions)
    DemoAuthProvider      built-in accounts, opaque in-process tokens
"""

import hashlib
import hmac
import secrets
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional

import httpx
import structlog

from exceptions import (
    AuthenticationError,
    ConflictError,
    ExternalServiceError,
    NetworkError,
    UserNotFoundError,
)
from models.user import Operator, UserResponse, UserRole, UserStatus, LoginResponse

logger = structlog.get_logger(__name__)


@dataclass
class AuthIdentity:
    """Result of a successful credential check."""
    user_id: str
    email: str
    access_token: Optional[str] = None
    expires_in: Optional[int] = None


class AuthProvider(ABC):

    @abstractmethod
    def sign_in(self, identifier: str, password: str) -> AuthIdentity:
        """Check credentials. Raises AuthenticationError."""

    @abstractmethod
    def resolve(self, token: str) -> AuthIdentity:
        """Identity behind a bearer token. Raises AuthenticationError."""

    @abstractmethod
    def sign_out(self, token: str) -> None:
        ...

    @abstractmethod
    def create_account(self, email: str, password: str) -> str:
        """Create login credentials, return the new user id."""

    @abstractmethod
    def reset_password(self, user_id: str, new_password: str) -> None:
        ...


# ===================
# SUPABASE AUTH
# ===================

class SupabaseAuthProvider(AuthProvider):
    """Supabase Auth. Admin calls need SUPABASE_SERVICE_KEY."""

    def _admin(self):
        from config.database import get_admin_client
        admin = get_admin_client()
        if admin is None:
            raise ExternalServiceError(
                service="supabase",
                message="SUPABASE_SERVICE_KEY is required for account administration",
                code="ADMIN_CLIENT_NOT_CONFIGURED"
            )
        return admin

    def sign_in(self, identifier: str, password: str) -> AuthIdentity:
        from config.database import create_auth_client

        try:
            result = create_auth_client().auth.sign_in_with_password({
                "email": identifier,
                "password": password,
            })
        except httpx.TransportError as e:
            raise NetworkError("supabase", f"Could not reach auth service: {e}") from e
        except Exception as e:
            logger.warning("supabase_sign_in_failed", identifier=identifier, error=str(e))
            raise AuthenticationError() from e

        if not result.user or not result.session:
            raise AuthenticationError()

        return AuthIdentity(
            user_id=result.user.id,
            email=result.user.email or identifier,
            access_token=result.session.access_token,
            expires_in=result.session.expires_in,
        )

    def resolve(self, token: str) -> AuthIdentity:
        from config.database import get_supabase_client

        try:
            result = get_supabase_client().auth.get_user(token)
        except httpx.TransportError as e:
            raise NetworkError("supabase", f"Could not reach auth service: {e}") from e
        except Exception as e:
            logger.info("supabase_token_rejected", error=str(e))
            raise AuthenticationError("Session expired or invalid") from e

        if result is None or result.user is None:
            raise AuthenticationError("Session expired or invalid")

        return AuthIdentity(user_id=result.user.id, email=result.user.email or "", access_token=token)

    def sign_out(self, token: str) -> None:
        from config.database import get_admin_client

        admin = get_admin_client()
        if admin is None:
            # JWTs expire on their own; nothing to revoke without the service key
            logger.info("supabase_sign_out_skipped")
            return
        try:
            admin.auth.admin.sign_out(token)
        except Exception as e:
            logger.warning("supabase_sign_out_failed", error=str(e))

    def create_account(self, email: str, password: str) -> str:
        try:
            result = self._admin().auth.admin.create_user({
                "email": email,
                "password": password,
                "email_confirm": True,
            })
        except ExternalServiceError:
            raise
        except httpx.TransportError as e:
            raise NetworkError("supabase", f"Could not reach auth service: {e}") from e
        except Exception as e:
            logger.error("supabase_create_user_failed", email=email, error=str(e))
            raise ExternalServiceError("supabase", f"Could not create account: {e}") from e

        return result.user.id

    def reset_password(self, user_id: str, new_password: str) -> None:
        try:
            self._admin().auth.admin.update_user_by_id(user_id, {"password": new_password})
        except ExternalServiceError:
            raise
        except httpx.TransportError as e:
            raise NetworkError("supabase", f"Could not reach auth service: {e}") from e
        except Exception as e:
            logger.error("supabase_password_reset_failed", user_id=user_id, error=str(e))
            raise ExternalServiceError("supabase", f"Could not reset password: {e}") from e


# ===================
# DEMO AUTH
# ===================

DEMO_PASSWORDS = ("demo", "admin123", "user123")

DEMO_ACCOUNTS = (
    {"id": "demo-admin-id", "username": "admin", "email": "admin@demo.local", "role": UserRole.ADMIN.value},
    {"id": "demo-user-id", "username": "user", "email": "user@demo.local", "role": UserRole.USER.value},
)


def _hash_password(password: str, salt: bytes) -> bytes:
    return hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), salt, 100_000)


class DemoAuthProvider(AuthProvider):
    """
    Accounts kept in memory.

    The seeded admin / user accounts accept any of DEMO_PASSWORDS until
    their password is reset.
    """

    def __init__(self):
        # login name or email -> user id
        self._logins: dict[str, str] = {}
        self._emails: dict[str, str] = {}
        self._credentials: dict[str, tuple[bytes, bytes]] = {}
        self._tokens: dict[str, str] = {}

        for account in DEMO_ACCOUNTS:
            self._register(account["id"], account["email"], account["username"])

    def _register(self, user_id: str, email: str, username: Optional[str] = None) -> None:
        self._emails[user_id] = email
        self._logins[email.lower()] = user_id
        if username:
            self._logins[username.lower()] = user_id

    def _check_password(self, user_id: str, password: str) -> bool:
        stored = self._credentials.get(user_id)
        if stored is None:
            return password in DEMO_PASSWORDS
        salt, digest = stored
        return hmac.compare_digest(_hash_password(password, salt), digest)

    def sign_in(self, identifier: str, password: str) -> AuthIdentity:
        user_id = self._logins.get(identifier.strip().lower())
        if user_id is None or not self._check_password(user_id, password):
            logger.info("demo_sign_in_failed", identifier=identifier)
            raise AuthenticationError("Invalid credentials. Try: admin/demo or user/demo")

        token = secrets.token_urlsafe(32)
        self._tokens[token] = user_id
        return AuthIdentity(user_id=user_id, email=self._emails[user_id], access_token=token)

    def resolve(self, token: str) -> AuthIdentity:
        user_id = self._tokens.get(token)
        if user_id is None:
            raise AuthenticationError("Session expired or invalid")
        return AuthIdentity(user_id=user_id, email=self._emails[user_id], access_token=token)

    def sign_out(self, token: str) -> None:
        self._tokens.pop(token, None)

    def create_account(self, email: str, password: str) -> str:
        if email.lower() in self._logins:
            raise ConflictError(f"An account for {email} already exists", code="USER_EXISTS")
        user_id = secrets.token_hex(16)
        self._register(user_id, email)
        self.reset_password(user_id, password)
        return user_id

    def reset_password(self, user_id: str, new_password: str) -> None:
        if user_id not in self._emails:
            raise UserNotFoundError(user_id)
        salt = secrets.token_bytes(16)
        self._credentials[user_id] = (salt, _hash_password(new_password, salt))
        # existing sessions stay valid, as with Supabase


# ===================
# SERVICE
# ===================

class AuthService:
    """
    Sign-in / session resolution joined with the users profile table.
    """

    def __init__(self, backend=None):
        self._backend = backend

    @property
    def backend(self):
        if self._backend is None:
            from services.backend import get_backend
            return get_backend()
        return self._backend

    def _profile(self, identity: AuthIdentity) -> Optional[UserResponse]:
        row = self.backend.users.get(identity.user_id)
        return UserResponse(**row) if row else None

    def login(self, identifier: str, password: str) -> LoginResponse:
        """
        Check credentials and return a bearer token with the profile.

        A missing profile row is created on first sign-in; disabled
        accounts are refused.

        Raises:
            AuthenticationError: Bad credentials or disabled account
        """
        logger.info("login_attempt", identifier=identifier)

        identity = self.backend.auth.sign_in(identifier, password)
        user = self._profile(identity)

        if user is None:
            logger.warning("profile_missing_creating", user_id=identity.user_id)
            rows = self.backend.users.insert({
                "id": identity.user_id,
                "username": identity.email.split("@")[0] or identifier,
                "role": UserRole.USER.value,
                "status": UserStatus.ACTIVE.value,
            })
            user = UserResponse(**rows[0])

        if not user.is_active:
            self.backend.auth.sign_out(identity.access_token)
            logger.warning("login_refused_disabled", user_id=user.id)
            raise AuthenticationError("Account is disabled")

        logger.info("login_success", user_id=user.id, role=user.role.value)

        return LoginResponse(
            access_token=identity.access_token,
            user=user,
            expires_in=identity.expires_in,
        )

    def current_user(self, token: str) -> Operator:
        """
        Operator behind a bearer token.

        Raises:
            AuthenticationError: Unknown token, missing profile or disabled account
        """
        identity = self.backend.auth.resolve(token)
        user = self._profile(identity)
        if user is None:
            raise AuthenticationError("User profile not found")
        if not user.is_active:
            raise AuthenticationError("Account is disabled")
        return user

    def logout(self, token: str) -> None:
        self.backend.auth.sign_out(token)
        logger.info("logout")


# Singleton instance
_auth_service: Optional[AuthService] = None


def get_auth_service() -> AuthService:
    """Get or create AuthService instance."""
    global _auth_service
    if _auth_service is None:
        _auth_service = AuthService()
    return _auth_service
