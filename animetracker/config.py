"""
Runtime configuration, read from environment variables.
"""
import os
import logging
from dataclasses import dataclass
from typing import Optional

logger = logging.getLogger(__name__)


def typed_value(value: Optional[str], data_type: str = "string", default=None):
    """Gibt value als korrekten Typ zurück"""
    if value is None or value == "":
        return default
    if data_type == "bool":
        return value.lower() in ("true", "1", "yes")
    elif data_type == "int":
        try:
            return int(value)
        except ValueError:
            logger.warning(f"Invalid integer config value '{value}', using {default}")
            return default
    elif data_type == "url":
        return value.rstrip('/')
    return value


@dataclass
class Settings:
    shoko_base_url: str = ""
    shoko_api_key: str = ""
    qbittorrent_url: str = ""
    qbittorrent_username: str = ""
    qbittorrent_password: str = ""
    download_token: str = ""
    ntfy_url: str = ""
    ntfy_auth: str = ""
    api_base_url: str = ""
    nyaa_base_url: str = "https://nyaa.si"
    log_level: str = "INFO"
    log_dir: str = "logs"
    port: int = 3000
    timezone: Optional[str] = None

    def has_library(self) -> bool:
        return bool(self.shoko_base_url)

    def has_torrent_client(self) -> bool:
        return bool(self.qbittorrent_url and self.qbittorrent_username and self.qbittorrent_password)

    def has_notifications(self) -> bool:
        return bool(self.ntfy_url)


# (env key, attribute, data type)
ENV_KEYS = [
    ("SHOKO_BASE_URL", "shoko_base_url", "url"),
    ("SHOKO_API_KEY", "shoko_api_key", "string"),
    ("QBITTORRENT_URL", "qbittorrent_url", "url"),
    ("QBITTORRENT_USERNAME", "qbittorrent_username", "string"),
    ("QBITTORRENT_PASSWORD", "qbittorrent_password", "string"),
    ("DOWNLOAD_TOKEN", "download_token", "string"),
    ("NTFY_URL", "ntfy_url", "string"),
    ("NTFY_AUTH", "ntfy_auth", "string"),
    ("NYAA_BASE_URL", "nyaa_base_url", "url"),
    ("LOG_LEVEL", "log_level", "string"),
    ("LOG_DIR", "log_dir", "string"),
    ("PORT", "port", "int"),
    ("TZ", "timezone", "string"),
]


def load_settings(environ=None) -> Settings:
    """Build Settings from the process environment (or a given mapping)."""
    environ = os.environ if environ is None else environ
    settings = Settings()

    for env_key, attribute, data_type in ENV_KEYS:
        value = typed_value(environ.get(env_key), data_type, default=getattr(settings, attribute))
        setattr(settings, attribute, value)

    base = environ.get("API_BASE_URL") or environ.get("APP_BASE_URL") or ""
    settings.api_base_url = base.rstrip('/')
    settings.log_level = settings.log_level.upper()
    return settings
