"""Application settings via environment variables."""

from __future__ import annotations

from pydantic_settings import BaseSettings, SettingsConfigDict

__all__ = ["Settings"]


class Settings(BaseSettings):
    """Central configuration, all values from environment."""

    model_config = SettingsConfigDict(env_prefix="SHIPSYNC_")

    # Flash Express credentials
    flash_express_merchant_id: str = ""
    flash_express_api_key: str = ""
    flash_express_base_url: str = "https://open-api-tra.flashexpress.com"
    flash_express_warehouse_no: str = ""

    # Transport
    flash_express_timeout: float = 15.0
    flash_express_max_retries: int = 2

    # Comma-separated override of the fields left out of the signature
    flash_express_sign_exclude: str = ""

    # Logging
    log_level: str = "INFO"
    log_json: bool = True

    # Target environment
    environment: str = "dev"

    @property
    def flash_express_configured(self) -> bool:
        return bool(self.flash_express_merchant_id.strip() and self.flash_express_api_key.strip())

    def sign_exclude_keys(self) -> frozenset[str] | None:
        """Parsed exclusion override, or None to keep the profile default."""
        keys = {k.strip() for k in self.flash_express_sign_exclude.split(",") if k.strip()}
        return frozenset(keys) if keys else None
