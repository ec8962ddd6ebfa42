# Copyright (c)
# SPDX-License-Identifier: MIT
"""Pydantic settings for the Alpha Vantage transport client."""

from __future__ import annotations

from typing import Literal

from pydantic import AliasChoices, Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict

from quantam_proxy.config.settings import split_csv

API_KEY_ENV = "PROXY_APIKEY_ALPHA_VANTAGE"


class AlphaVantageSettings(BaseSettings):
    """Configuration for the Alpha Vantage client.

    Environment variables (with ``model_config.env_prefix``):

    * ``PROXY_APIKEY_ALPHA_VANTAGE`` (or ``ALPHAVANTAGE_API_KEY``)
    * ``ALPHAVANTAGE_BASE_URL``
    * ``ALPHAVANTAGE_TIMEOUT_S``
    * ``ALPHAVANTAGE_MAX_RETRIES``
    * ``ALPHAVANTAGE_DATA_TYPE`` (``csv`` or ``json``)
    * ``ALPHAVANTAGE_OUTPUT_SIZE`` (``full`` or ``compact``)
    * ``ALPHAVANTAGE_DAILY_SUPPORTED``
    * ``ALPHAVANTAGE_EXCHANGES`` (comma-separated exchange codes)
    * ``ALPHAVANTAGE_ALLOWED_INTRADAY_INTERVALS`` (comma-separated list)
    """

    base_url: str = Field(
        "https://www.alphavantage.co/query",
        description="Query endpoint of the Alpha Vantage API.",
    )
    api_key: SecretStr = Field(
        ...,
        description="Alpha Vantage API key.",
        validation_alias=AliasChoices(API_KEY_ENV, "ALPHAVANTAGE_API_KEY"),
    )
    timeout_s: float = Field(10.0, gt=0, description="Per-request timeout in seconds.")
    max_retries: int = Field(2, ge=0, description="Retry budget for retryable failures.")
    data_type: Literal["csv", "json"] = Field("csv", description="Requested payload format.")
    output_size: Literal["full", "compact"] = Field("full", description="Requested history depth.")
    daily_supported: bool = Field(True, description="Whether daily series are offered.")
    exchanges_raw: str | None = Field(
        None,
        description="Comma-separated supported exchange codes from env.",
        validation_alias="ALPHAVANTAGE_EXCHANGES",
    )
    allowed_intraday_intervals_raw: str | None = Field(
        None,
        description="Comma-separated allowed intraday intervals from env.",
        validation_alias="ALPHAVANTAGE_ALLOWED_INTRADAY_INTERVALS",
    )

    model_config: SettingsConfigDict = SettingsConfigDict(
        env_prefix="ALPHAVANTAGE_",
        extra="ignore",
        populate_by_name=True,
    )

    @property
    def exchanges(self) -> list[str]:
        """Return normalized exchange codes (upper-cased, stripped)."""
        return split_csv(self.exchanges_raw, ["NASDAQ", "NYSE", "AMEX", "LSE", "TSX"], upper=True)

    @property
    def allowed_intraday_intervals(self) -> list[str]:
        """Return normalized intraday intervals (lowercased, stripped)."""
        return split_csv(self.allowed_intraday_intervals_raw, ["1m", "5m", "15m", "30m", "1h"])
