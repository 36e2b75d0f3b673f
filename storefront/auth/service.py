"""Login, registration, logout, profile and address book calls."""
from typing import Any, List, Mapping, Optional, Union

from pydantic import ValidationError as PydanticValidationError

from storefront.auth.executor import AuthenticatedRequestExecutor, read_envelope
from storefront.auth.tokens import TokenManager
from storefront.errors import (
    ERROR_LOGIN_FAILED,
    ERROR_REGISTRATION_FAILED,
    ERROR_UNEXPECTED_RESPONSE,
    NetworkError,
    RemoteError,
    ValidationError,
)
from storefront.logging import get_logger, sanitize_id_for_logging
from storefront.models import SavedAddress, User

logger = get_logger(__name__)

ADDRESS_PATH = "/users/address"


class AuthService:
    """Backend auth and profile endpoints. Stores the issued token pair in TokenManager."""

    def __init__(self, executor: AuthenticatedRequestExecutor, token_manager: TokenManager):
        self.executor = executor
        self.tokens = token_manager

    def _store_tokens(self, data: dict, fallback_message: str) -> None:
        token = data.get("token")
        refresh_token = data.get("refreshToken")
        if not token or not refresh_token:
            raise RemoteError(fallback_message)
        self.tokens.set(token, refresh_token)

    @staticmethod
    def _parse_user(data: dict) -> Optional[User]:
        """
        Raises:
            RemoteError: the user object does not match the profile schema
        """
        user = data.get("user")
        if not isinstance(user, dict):
            return None
        try:
            return User.model_validate(user)
        except PydanticValidationError as e:
            logger.warning("Malformed user in response: %d error(s)", e.error_count())
            raise RemoteError(ERROR_UNEXPECTED_RESPONSE) from e

    @staticmethod
    def _address_from(address: Union[SavedAddress, Mapping[str, Any]]) -> SavedAddress:
        if isinstance(address, SavedAddress):
            entry = address
        else:
            try:
                entry = SavedAddress.model_validate(dict(address))
            except (PydanticValidationError, TypeError, ValueError) as e:
                raise ValidationError(fields=list(SavedAddress.REQUIRED_FIELDS)) from e
        missing = entry.missing_fields()
        if missing:
            raise ValidationError(fields=missing)
        return entry

    async def login(self, email: str, password: str) -> Optional[User]:
        """
        Authenticate with email/password.

        Tokens are stored only once the whole response has been parsed.

        Raises:
            RemoteError: rejected credentials or malformed response
            NetworkError: backend unreachable
        """
        response = await self.executor.request(
            "POST", "/auth/login", json={"email": email, "password": password}, auth=False
        )
        data = read_envelope(response)
        user = self._parse_user(data)
        self._store_tokens(data, ERROR_LOGIN_FAILED)
        return user

    async def register(self, name: str, email: str, password: str, phone: str = "") -> Optional[User]:
        """
        Create an account. The backend logs the user in when it returns tokens.

        Returns:
            The created user (tokens stored only when issued)
        """
        response = await self.executor.request(
            "POST",
            "/auth/register",
            json={"name": name, "email": email, "password": password, "phone": phone},
            auth=False,
        )
        data = read_envelope(response)
        user = self._parse_user(data)

        if data.get("token"):
            self._store_tokens(data, ERROR_REGISTRATION_FAILED)
        return user

    async def logout(self) -> None:
        """Tell the backend to revoke the session. Best effort: never raises."""
        token = self.tokens.access_token
        if not token:
            return
        try:
            response = await self.executor.request("POST", "/auth/logout", refresh=False)
            if response.is_error:
                logger.info("Backend logout returned %s", response.status_code)
        except NetworkError as e:
            logger.warning("Backend logout failed: %s", e)

    async def fetch_profile(self) -> User:
        """Fetch the current user's profile."""
        response = await self.executor.request("GET", "/users/profile")
        data = read_envelope(response)
        user = self._parse_user(data)
        if user is None:
            raise RemoteError("Profile not available", status_code=response.status_code)
        return user

    async def update_profile(self, name: str, phone: Optional[str] = None) -> User:
        """
        Change the display name and phone.

        Raises:
            ValidationError: blank name (no network call)
        """
        name = (name or "").strip()
        if not name:
            raise ValidationError(fields=["name"])

        response = await self.executor.request(
            "PUT", "/users/profile", json={"name": name, "phone": (phone or "").strip()}
        )
        user = self._parse_user(read_envelope(response))
        if user is None:
            raise RemoteError("Profile not available", status_code=response.status_code)
        logger.info("Profile updated")
        return user

    # ==================== ADDRESS BOOK ====================
    # Every change is followed by a profile fetch; the profile carries the list.

    async def list_addresses(self) -> List[SavedAddress]:
        return (await self.fetch_profile()).addresses

    async def add_address(self, address: Union[SavedAddress, Mapping[str, Any]]) -> User:
        """
        Save a new address.

        Returns:
            The refreshed profile

        Raises:
            ValidationError: required address fields missing (no network call)
        """
        entry = self._address_from(address)
        response = await self.executor.request("POST", ADDRESS_PATH, json=entry.to_payload())
        read_envelope(response)
        return await self.fetch_profile()

    async def update_address(self, address_id: str, address: Union[SavedAddress, Mapping[str, Any]]) -> User:
        if not address_id:
            raise ValidationError(fields=["id"])
        entry = self._address_from(address)
        response = await self.executor.request("PUT", f"{ADDRESS_PATH}/{address_id}", json=entry.to_payload())
        read_envelope(response)
        logger.info("Address %s updated", sanitize_id_for_logging(address_id))
        return await self.fetch_profile()

    async def delete_address(self, address_id: str) -> User:
        if not address_id:
            raise ValidationError(fields=["id"])
        response = await self.executor.request("DELETE", f"{ADDRESS_PATH}/{address_id}")
        read_envelope(response)
        logger.info("Address %s deleted", sanitize_id_for_logging(address_id))
        return await self.fetch_profile()
