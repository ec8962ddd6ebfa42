# Copyright (c)
# SPDX-License-Identifier: MIT
"""Pydantic settings for the Marketstack transport client."""

from __future__ import annotations

from pydantic import AliasChoices, Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict

from quantam_proxy.config.settings import split_csv

API_KEY_ENV = "PROXY_APIKEY_MARKET_STACK"


class MarketstackSettings(BaseSettings):
    """Configuration for the Marketstack V2 client.

    Environment variables (with ``model_config.env_prefix``):

    * ``PROXY_APIKEY_MARKET_STACK`` (or ``MARKETSTACK_ACCESS_KEY``)
    * ``MARKETSTACK_BASE_URL``
    * ``MARKETSTACK_TIMEOUT_S``
    * ``MARKETSTACK_MAX_RETRIES``
    * ``MARKETSTACK_PAGE_LIMIT``
    * ``MARKETSTACK_DAILY_SUPPORTED``
    * ``MARKETSTACK_EXCHANGES`` (comma-separated exchange codes)
    * ``MARKETSTACK_ALLOWED_INTRADAY_INTERVALS`` (comma-separated list)
    """

    base_url: str = Field(
        "https://api.marketstack.com/v2",
        description="Base URL for the Marketstack V2 API.",
    )
    access_key: SecretStr = Field(
        ...,
        description="Marketstack API access key.",
        validation_alias=AliasChoices(API_KEY_ENV, "MARKETSTACK_ACCESS_KEY"),
    )
    timeout_s: float = Field(
        8.0,
        gt=0,
        description="Per-request timeout in seconds for the transport client.",
    )
    max_retries: int = Field(
        4,
        ge=0,
        description="Maximum number of retry attempts for retryable failures.",
    )
    page_limit: int = Field(
        1000,
        ge=1,
        le=1000,
        description="Rows requested per call.",
    )
    daily_supported: bool = Field(True, description="Whether /eod is offered.")
    # Raw env values (comma-separated); normalized in properties below.
    exchanges_raw: str | None = Field(
        None,
        description="Comma-separated supported exchange codes from env.",
        validation_alias="MARKETSTACK_EXCHANGES",
    )
    allowed_intraday_intervals_raw: str | None = Field(
        None,
        description="Comma-separated allowed intraday intervals from env.",
        validation_alias="MARKETSTACK_ALLOWED_INTRADAY_INTERVALS",
    )

    model_config: SettingsConfigDict = SettingsConfigDict(
        env_prefix="MARKETSTACK_",
        env_nested_delimiter="__",
        extra="ignore",
        populate_by_name=True,
    )

    @property
    def exchanges(self) -> list[str]:
        """Return normalized exchange codes (upper-cased, stripped)."""
        return split_csv(self.exchanges_raw, ["NASDAQ", "NYSE", "AMEX", "LSE"], upper=True)

    @property
    def allowed_intraday_intervals(self) -> list[str]:
        """Return normalized intraday intervals (lowercased, stripped)."""
        return split_csv(self.allowed_intraday_intervals_raw, ["1h", "30min", "15min"])
