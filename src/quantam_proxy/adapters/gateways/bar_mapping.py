# src/quantam_proxy/adapters/gateways/bar_mapping.py
# Copyright (c)
# SPDX-License-Identifier: MIT
"""Coercion helpers shared by provider gateways.

Every failure here is an upstream payload problem and surfaces as
:class:`MarketDataValidationError`.
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from datetime import UTC, date, datetime, time, tzinfo
from decimal import Decimal, InvalidOperation
from typing import Any

from quantam_proxy.domain.entities.stock_bar import BarInterval, StockBar
from quantam_proxy.domain.exceptions.market_data import MarketDataValidationError

_COMPACT_OFFSET = re.compile(r"([+-]\d{2})(\d{2})$")


def parse_timestamp(value: Any, *, tz: tzinfo = UTC) -> datetime:
    """Parse a provider timestamp into an aware datetime.

    Accepts ISO-8601 with ``Z``, ``+00:00`` or ``+0000`` offsets, space
    separated date-times, and bare dates (midnight). Naive values are
    localized to ``tz``.

    Raises:
        MarketDataValidationError: If the value cannot be parsed.
    """
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime.combine(value, time.min)
    else:
        text = str(value or "").strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        text = _COMPACT_OFFSET.sub(r"\1:\2", text) if "T" in text or " " in text else text
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError as exc:
            raise MarketDataValidationError(
                "bad_timestamp", details={"value": str(value)}
            ) from exc
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=tz)
    return parsed


def to_decimal(value: Any, *, field: str) -> Decimal:
    """Convert a provider number to ``Decimal``.

    Raises:
        MarketDataValidationError: If the value is missing or not numeric.
    """
    if value is None or value == "":
        raise MarketDataValidationError("missing_field", details={"field": field})
    try:
        return Decimal(str(value))
    except InvalidOperation as exc:
        raise MarketDataValidationError(
            "bad_number", details={"field": field, "value": str(value)}
        ) from exc


def build_bar(
    row: Mapping[str, Any],
    *,
    symbol: str,
    exchange: str,
    interval: BarInterval,
    timestamp_key: str,
    tz: tzinfo = UTC,
) -> StockBar:
    """Map one provider row to a :class:`StockBar`.

    Raises:
        MarketDataValidationError: If a field is missing, malformed or the
            bar violates OHLC invariants.
    """
    volume_raw = row.get("volume")
    try:
        return StockBar(
            symbol=symbol,
            exchange=exchange,
            interval=interval,
            timestamp=parse_timestamp(row.get(timestamp_key), tz=tz),
            open=to_decimal(row.get("open"), field="open"),
            high=to_decimal(row.get("high"), field="high"),
            low=to_decimal(row.get("low"), field="low"),
            close=to_decimal(row.get("close"), field="close"),
            volume=None if volume_raw in (None, "") else to_decimal(volume_raw, field="volume"),
        )
    except ValueError as exc:
        raise MarketDataValidationError("bad_bar", details={"error": str(exc)}) from exc
