"""Tests for environment-driven settings."""

from __future__ import annotations

import pytest

from shipsync.settings import Settings


def test_defaults(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in ("SHIPSYNC_FLASH_EXPRESS_MERCHANT_ID", "SHIPSYNC_FLASH_EXPRESS_API_KEY"):
        monkeypatch.delenv(name, raising=False)
    settings = Settings()
    assert settings.flash_express_configured is False
    assert settings.flash_express_base_url == "https://open-api-tra.flashexpress.com"
    assert settings.sign_exclude_keys() is None


def test_reads_prefixed_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("SHIPSYNC_FLASH_EXPRESS_MERCHANT_ID", "AAXXXX")
    monkeypatch.setenv("SHIPSYNC_FLASH_EXPRESS_API_KEY", "secret")
    monkeypatch.setenv("SHIPSYNC_FLASH_EXPRESS_MAX_RETRIES", "5")
    settings = Settings()
    assert settings.flash_express_configured is True
    assert settings.flash_express_max_retries == 5


def test_whitespace_credentials_are_not_configured() -> None:
    settings = Settings(flash_express_merchant_id="AAXXXX", flash_express_api_key="   ")
    assert settings.flash_express_configured is False


def test_sign_exclude_keys_parsing() -> None:
    settings = Settings(flash_express_sign_exclude=" subItemTypes, ,subParcel,remark ")
    assert settings.sign_exclude_keys() == frozenset({"subItemTypes", "subParcel", "remark"})
