"""Authentication package: token storage, authenticated requests, auth endpoints."""
from .tokens import Session, TokenManager
from .executor import AuthenticatedRequestExecutor, read_envelope
from .service import AuthService

__all__ = [
    "Session",
    "TokenManager",
    "AuthenticatedRequestExecutor",
    "read_envelope",
    "AuthService",
]
