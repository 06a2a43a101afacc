"""
cpcli - Configuration Loader

This module loads connection settings with cascading priority: environment
variables over the profile file (~/.cpcli/config.json). Secrets (tokens and web
session cookies) are kept in the system keyring, never in the profile file.
"""

import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, List, Optional

import keyring
from keyring.errors import KeyringError, PasswordDeleteError
from pydantic import ValidationError as PydanticValidationError

from .exceptions import ConfigurationError
from .models import CPPMConfig, StoredCookie

logger = logging.getLogger("cpcli")

# Environment variable -> config field
ENV_VARS = {
    "CPPM_SERVER": "server",
    "CPPM_CLIENT": "client_id",
    "CPPM_USER": "username",
    "CPPM_TOKEN": "token",
    "CPPM_REFRESH": "refresh",
    "CPPM_UNSAFE": "verify_ssl",
    "CPPM_PAGESIZE": "page_size",
}

_PROFILE_FIELDS = ("server", "client_id", "username", "verify_ssl", "page_size")


def _is_true(value: str) -> bool:
    return value.strip().lower() in ("true", "1", "yes")


class ConfigLoader:
    """
    Configuration loader for ClearPass connections.

    Priority order for each setting:
    1. Environment variables (highest priority) - for scripts and containers
    2. Config file (~/.cpcli/config.json) - named profiles

    Cached tokens and cookies come from the keyring, unless the environment
    provides a token.
    """

    DEFAULT_CONFIG_DIR = Path.home() / ".cpcli"
    DEFAULT_CONFIG_FILE = DEFAULT_CONFIG_DIR / "config.json"
    REQUIRED_FILE_PERMISSIONS = 0o600
    KEYRING_SERVICE_NAME = "cpcli"

    @classmethod
    def load(cls, profile: str = "default") -> CPPMConfig:
        """
        Load the configuration for the specified profile.

        Args:
            profile: Profile name to load (default: "default")

        Returns:
            CPPMConfig with cached credentials filled in when available

        Raises:
            ConfigurationError: If no server is configured or a value is invalid
        """
        logger.debug(f"Loading configuration for profile: {profile}")

        values: Dict[str, Any] = cls._load_from_config_file(profile) or {}
        env_values = cls._load_from_env()
        if env_values:
            logger.info("Applied configuration from environment variables")
        values.update(env_values)

        if not values.get("server"):
            raise ConfigurationError(
                f"No server configured for profile '{profile}'. "
                f"Please configure one using 'cpcli login' or set CPPM_SERVER"
            )

        try:
            config = CPPMConfig(**values)
        except PydanticValidationError as e:
            raise ConfigurationError(f"Invalid configuration for profile '{profile}': {e}")

        if not config.token:
            credentials = cls.load_credentials(profile, config.server)
            config.token = credentials["token"]
            config.refresh = credentials["refresh"]
            config.cookies = credentials["cookies"]
        return config

    @classmethod
    def _load_from_env(cls) -> Dict[str, Any]:
        """Settings present in the environment."""
        values: Dict[str, Any] = {}
        for name, field in ENV_VARS.items():
            raw = os.getenv(name)
            if raw is None or raw == "":
                continue
            if name == "CPPM_UNSAFE":
                values[field] = not _is_true(raw)
            elif name == "CPPM_PAGESIZE":
                try:
                    values[field] = int(raw)
                except ValueError:
                    raise ConfigurationError(f"Invalid page size in {name}: {raw!r}")
            else:
                values[field] = raw
        return values

    @classmethod
    def _read_config_file(cls) -> Dict[str, Any]:
        config_file = cls.DEFAULT_CONFIG_FILE
        if not config_file.exists():
            logger.debug(f"Config file not found: {config_file}")
            return {}

        cls._verify_file_permissions(config_file)
        try:
            with open(config_file, 'r') as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            logger.error(f"Invalid JSON in config file: {e}")
            raise ConfigurationError(f"Invalid JSON in config file: {e}")
        except OSError as e:
            logger.error(f"Error reading config file: {e}")
            raise ConfigurationError(f"Error reading config file: {e}")

        if not isinstance(data, dict):
            raise ConfigurationError("Config file must contain a JSON object of profiles")
        return data

    @classmethod
    def _write_config_file(cls, data: Dict[str, Any]) -> None:
        config_file = cls.DEFAULT_CONFIG_FILE
        config_file.parent.mkdir(parents=True, exist_ok=True)
        try:
            with open(config_file, 'w') as f:
                json.dump(data, f, indent=2)
        except OSError as e:
            raise ConfigurationError(f"Error writing config file: {e}")
        cls._set_secure_permissions(config_file)

    @classmethod
    def _load_from_config_file(cls, profile: str) -> Optional[Dict[str, Any]]:
        """Settings of one profile from the config file."""
        data = cls._read_config_file()
        if profile not in data:
            logger.debug(f"Profile '{profile}' not found in config file")
            return None
        return {k: v for k, v in data[profile].items() if k in _PROFILE_FIELDS}

    @classmethod
    def save_profile(cls, profile: str, config: CPPMConfig) -> None:
        """
        Save the non-secret settings of a profile to the config file.

        Args:
            profile: Profile name
            config: Configuration to save; tokens and cookies are not written

        Raises:
            ConfigurationError: If the file cannot be read or written
        """
        data = cls._read_config_file()
        data[profile] = config.model_dump(include=set(_PROFILE_FIELDS))
        cls._write_config_file(data)
        logger.info(f"Saved profile '{profile}' to config file")

    @classmethod
    def delete_profile(cls, profile: str) -> None:
        """
        Delete a profile from the config file, and its cached credentials.

        Raises:
            ConfigurationError: If the profile doesn't exist
        """
        data = cls._read_config_file()
        if profile not in data:
            raise ConfigurationError(f"Profile '{profile}' not found")

        server = data[profile].get("server", "")
        del data[profile]
        cls._write_config_file(data)
        if server:
            cls.clear_credentials(profile, server)
        logger.info(f"Deleted profile '{profile}' from config file")

    @classmethod
    def get_profile_info(cls, profile: str) -> Dict[str, Any]:
        """
        Non-secret settings of a profile.

        Raises:
            ConfigurationError: If the profile doesn't exist
        """
        settings = cls._load_from_config_file(profile)
        if settings is None:
            raise ConfigurationError(f"Profile '{profile}' not found")
        return {
            "server": settings.get("server", ""),
            "client_id": settings.get("client_id", ""),
            "username": settings.get("username", ""),
            "verify_ssl": settings.get("verify_ssl", True),
        }

    @classmethod
    def list_profiles(cls) -> List[str]:
        """List all configured profiles."""
        return list(cls._read_config_file().keys())

    # ----- keyring -----

    @classmethod
    def _keyring_user(cls, profile: str, server: str) -> str:
        return f"{profile}@{server}"

    @classmethod
    def save_credentials(
        cls,
        profile: str,
        server: str,
        token: str,
        refresh: str,
        cookies: Optional[List[StoredCookie]] = None,
    ) -> None:
        """
        Cache tokens and web cookies in the keyring.

        Raises:
            ConfigurationError: If the keyring backend refuses the write
        """
        payload = {
            "token": token,
            "refresh": refresh,
            "cookies": [c.model_dump() for c in cookies or []],
        }
        try:
            keyring.set_password(cls.KEYRING_SERVICE_NAME,
                                 cls._keyring_user(profile, server),
                                 json.dumps(payload))
        except KeyringError as e:
            raise ConfigurationError(f"Could not store credentials in keyring: {e}")
        logger.debug(f"Stored credentials for profile '{profile}' in keyring")

    @classmethod
    def load_credentials(cls, profile: str, server: str) -> Dict[str, Any]:
        """
        Cached tokens and web cookies from the keyring.

        Returns:
            Dictionary with "token", "refresh" and "cookies"; empty values when
            nothing usable is stored
        """
        empty: Dict[str, Any] = {"token": "", "refresh": "", "cookies": []}
        try:
            stored = keyring.get_password(cls.KEYRING_SERVICE_NAME,
                                          cls._keyring_user(profile, server))
        except KeyringError as e:
            logger.debug(f"Could not load from keyring: {e}")
            return empty
        if not stored:
            return empty

        try:
            data = json.loads(stored)
            return {
                "token": data.get("token", ""),
                "refresh": data.get("refresh", ""),
                "cookies": [StoredCookie.model_validate(c) for c in data.get("cookies", [])],
            }
        except (json.JSONDecodeError, AttributeError, PydanticValidationError) as e:
            logger.warning(f"Ignoring unreadable credentials for profile '{profile}': {e}")
            return empty

    @classmethod
    def clear_credentials(cls, profile: str, server: str) -> None:
        """Forget cached tokens and cookies."""
        try:
            keyring.delete_password(cls.KEYRING_SERVICE_NAME, cls._keyring_user(profile, server))
        except PasswordDeleteError:
            logger.debug(f"No cached credentials for profile '{profile}'")
        except KeyringError as e:
            logger.warning(f"Could not clear credentials for profile '{profile}': {e}")

    # ----- file permissions -----

    @classmethod
    def _set_secure_permissions(cls, file_path: Path) -> None:
        """Set secure file permissions (0600 - owner read/write only)."""
        try:
            os.chmod(file_path, cls.REQUIRED_FILE_PERMISSIONS)
            logger.debug(f"Set secure permissions on {file_path}")
        except OSError as e:
            logger.warning(f"Could not set secure permissions on {file_path}: {e}")

    @classmethod
    def _verify_file_permissions(cls, file_path: Path) -> None:
        """Verify file has secure permissions and fix them if not."""
        try:
            current_perms = os.stat(file_path).st_mode & 0o777
        except OSError as e:
            logger.debug(f"Could not verify file permissions: {e}")
            return

        if current_perms != cls.REQUIRED_FILE_PERMISSIONS:
            logger.warning(
                f"Config file {file_path} has insecure permissions {oct(current_perms)}. "
                f"Recommended: {oct(cls.REQUIRED_FILE_PERMISSIONS)}"
            )
            cls._set_secure_permissions(file_path)
