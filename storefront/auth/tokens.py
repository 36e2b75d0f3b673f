"""Access/refresh token ownership and persistence."""
from dataclasses import dataclass
from typing import Optional

from storefront.db import KeyValueStorage, StorageKeys
from storefront.logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class Session:
    """Access/refresh token pair. Both set or both None."""
    access_token: Optional[str] = None
    refresh_token: Optional[str] = None

    @property
    def is_active(self) -> bool:
        return bool(self.access_token and self.refresh_token)


EMPTY_SESSION = Session()


class TokenManager:
    """
    Sole owner of the Session.

    The in-memory pair is an immutable Session replaced by a single
    assignment, and both persisted entries are written in one storage call,
    so no reader ever sees a token from one rotation next to a token from
    another.
    """

    def __init__(self, storage: KeyValueStorage):
        self._storage = storage
        self._session: Session = EMPTY_SESSION

    @property
    def session(self) -> Session:
        return self._session

    @property
    def access_token(self) -> Optional[str]:
        return self._session.access_token

    @property
    def refresh_token(self) -> Optional[str]:
        return self._session.refresh_token

    @property
    def is_active(self) -> bool:
        return self._session.is_active

    def load(self) -> Session:
        """Load the persisted pair; a half-populated pair counts as no session."""
        access = self._storage.get(StorageKeys.ACCESS_TOKEN)
        refresh = self._storage.get(StorageKeys.REFRESH_TOKEN)

        if access and refresh:
            self._session = Session(access_token=access, refresh_token=refresh)
            return self._session

        if access or refresh:
            logger.warning("Discarding incomplete persisted session")
            self._storage.delete(StorageKeys.ACCESS_TOKEN, StorageKeys.REFRESH_TOKEN)

        self._session = EMPTY_SESSION
        return self._session

    def set(self, access_token: str, refresh_token: str) -> Session:
        """Persist and publish a new token pair."""
        if not access_token or not refresh_token:
            raise ValueError("access_token and refresh_token must both be non-empty")

        session = Session(access_token=access_token, refresh_token=refresh_token)
        self._storage.set_many({
            StorageKeys.ACCESS_TOKEN: access_token,
            StorageKeys.REFRESH_TOKEN: refresh_token,
        })
        self._session = session
        return session

    def clear(self) -> None:
        """Forget both tokens, in memory and on disk."""
        self._session = EMPTY_SESSION
        self._storage.delete(StorageKeys.ACCESS_TOKEN, StorageKeys.REFRESH_TOKEN)
