"""Services package exports."""

from accounts.services.account_service import AccountService
from accounts.services.logging_service import configure_logging, get_logger
from accounts.services.password_service import PasswordService
from accounts.services.session_service import SessionService
from accounts.services.storage_service import StorageService
from accounts.services.token_service import TokenService
from accounts.services.user_service import UserService

__all__ = [
    "AccountService",
    "PasswordService",
    "SessionService",
    "StorageService",
    "TokenService",
    "UserService",
    "configure_logging",
    "get_logger",
]
