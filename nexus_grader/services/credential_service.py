"""
Credential sources for the provider API key
"""
import logging
from abc import ABC, abstractmethod
from typing import Any, Optional

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from ..utils.config import Settings, settings as default_settings
from ..utils.database_manager import DatabaseManager


logger = logging.getLogger(__name__)

PRIMARY_KEY_PATH = "config/openrouter/apiKey"
LEGACY_KEY_PATH = "config/openrouterKey"


class MissingCredentialsError(RuntimeError):
    """No API key at the primary or the legacy location"""
    pass


def _clean(raw: Any) -> str:
    return raw.strip() if isinstance(raw, str) else ""


class CredentialSource(ABC):
    """Resolves the provider API key from a primary and one legacy location"""

    primary_path: str = PRIMARY_KEY_PATH
    legacy_path: str = LEGACY_KEY_PATH

    @abstractmethod
    def read(self, path: str) -> Optional[str]:
        """Read the raw value stored at ``path``"""
        pass

    def get_api_key(self) -> str:
        key = _clean(self.read(self.primary_path))
        if not key:
            key = _clean(self.read(self.legacy_path))
            if key:
                logger.info(f"Using provider API key from legacy location {self.legacy_path}")

        if not key:
            raise MissingCredentialsError(
                f"Provider API key not found. Expected at {self.primary_path} "
                f"or legacy {self.legacy_path}."
            )
        return key

    def is_configured(self) -> bool:
        try:
            self.get_api_key()
            return True
        except MissingCredentialsError:
            return False


class SettingsCredentialSource(CredentialSource):
    """API key from environment / .env (OPENROUTER_API_KEY, legacy OPENROUTER_KEY)"""

    primary_path = "OPENROUTER_API_KEY"
    legacy_path = "OPENROUTER_KEY"

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or default_settings

    def read(self, path: str) -> Optional[str]:
        return getattr(self.settings, path.lower(), None)


class StaticCredentialSource(CredentialSource):
    """Fixed key, for scripts and tests"""

    def __init__(self, api_key: Optional[str]):
        self.api_key = api_key

    def read(self, path: str) -> Optional[str]:
        return self.api_key if path == self.primary_path else None


class ConfigStoreCredentialSource(CredentialSource):
    """API key from the app_config key-value table"""

    def __init__(self, db_manager: DatabaseManager):
        self.db_manager = db_manager

    def read(self, path: str) -> Optional[str]:
        session = self.db_manager.get_session()
        try:
            row = session.execute(
                text("SELECT value FROM app_config WHERE path = :path"),
                {"path": path},
            ).fetchone()
            return row[0] if row else None
        except SQLAlchemyError as e:
            logger.error(f"Error reading {path} from config store: {e}")
            raise MissingCredentialsError(f"Could not read {path} from config store: {e}") from e
        finally:
            session.close()

    def store(self, path: str, value: str) -> None:
        session = self.db_manager.get_session()
        try:
            session.execute(text("DELETE FROM app_config WHERE path = :path"), {"path": path})
            session.execute(
                text("INSERT INTO app_config (path, value) VALUES (:path, :value)"),
                {"path": path, "value": value},
            )
            session.commit()
        except SQLAlchemyError:
            session.rollback()
            raise
        finally:
            session.close()
