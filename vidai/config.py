"""
vidai Settings Configuration
"""

import tempfile
from typing import Any, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from ._http import DEFAULT_BASE_URL
from .resources.tasks import DEFAULT_STORAGE_URL_TEMPLATE, TRANSIENT_REASON_PREFIXES


class Settings(BaseSettings):
    """Settings loaded from ``VIDAI_*`` environment variables or a config file.

    Pass ``_env_file="vidai.env"`` to read a dotenv-style file; keys in it
    use the same ``VIDAI_`` prefix. Keyword arguments win over both.
    """

    model_config = SettingsConfigDict(
        env_prefix="VIDAI_",
        case_sensitive=False,
        extra="ignore",
    )

    # Credentials
    token: str = ""

    # Request layer
    base_url: str = DEFAULT_BASE_URL
    wait: float = Field(default=2.0, ge=0)
    timeout: float = Field(default=120.0, gt=0)
    max_attempts: int = Field(default=3, ge=1)
    proxy: Optional[str] = None

    # Tasks
    poll_interval: float = Field(default=5.0, gt=0)
    storage_url_template: str = DEFAULT_STORAGE_URL_TEMPLATE
    transient_reasons: list[str] = Field(default_factory=lambda: list(TRANSIENT_REASON_PREFIXES))
    unknown_reason_is_transient: bool = True

    # Media
    ffmpeg_path: str = "ffmpeg"
    work_dir: str = Field(default_factory=tempfile.gettempdir)

    # Diagnostics
    debug: bool = False
    debug_dir: Optional[str] = "logs"


def load_settings(config_file: Optional[str] = None, **overrides: Any) -> Settings:
    """Build :class:`Settings`, dropping ``None`` overrides so unset CLI
    flags fall through to the environment and config file."""
    values = {k: v for k, v in overrides.items() if v is not None}
    if config_file:
        return Settings(_env_file=config_file, **values)
    return Settings(**values)
