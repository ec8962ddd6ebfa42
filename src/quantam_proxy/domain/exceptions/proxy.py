# Copyright (c) Quantam.
# SPDX-License-Identifier: MIT
"""
Retrieval Job Exceptions

Purpose:
    Error taxonomy for routing and retrieving bars through a provider.
    ``ClientError`` and ``ProviderError`` are the two structured failure kinds
    a retrieval can end in; the kind is carried by the exception type and maps
    to the ledger status code via ``status_code``.

Layer: domain/exceptions
"""
from __future__ import annotations

from typing import TYPE_CHECKING, Any, ClassVar

from .base import DomainError

if TYPE_CHECKING:
    from quantam_proxy.domain.entities.retrieval import RetrievalJobResult


class RetrievalFailure(DomainError):
    """A retrieval job ended in a classified failure.

    Attributes:
        status_code: Ledger status code recorded for this failure kind.
        result: Ledger-derived job view, attached by the router once the
            finalized row has been read back.
    """

    code = "RETRIEVAL_FAILURE"
    status_code: ClassVar[int] = 500

    def __init__(self, message: str = "", *, details: dict[str, Any] | None = None) -> None:
        super().__init__(message, details=details)
        self.result: RetrievalJobResult | None = None

    @property
    def ledger_message(self) -> str:
        """Return the message recorded in the ledger for this failure."""
        text = str(self)
        return f"{self.code}: {text}" if text else self.code


class ClientError(RetrievalFailure):
    """Caller-attributable failure (unsupported exchange/interval, bad symbol)."""

    code = "CLIENT_ERROR"
    status_code = 400


class ProviderError(RetrievalFailure):
    """External source failed, timed out or returned unexpected data."""

    code = "PROVIDER_ERROR"
    status_code = 500


class UnsupportedRequest(ClientError):
    """The provider's capabilities do not cover the requested exchange/interval."""

    code = "UNSUPPORTED_REQUEST"


class InvalidRequest(ClientError):
    """The request itself is malformed (empty symbol or exchange)."""

    code = "INVALID_REQUEST"


class UnknownProvider(ClientError):
    """No provider adapter is registered under the requested name."""

    code = "UNKNOWN_PROVIDER"


class LedgerInconsistency(DomainError):
    """The job ledger cannot honor its audit-trail guarantee.

    Raised when a referenced ``job_id`` does not exist, or when a row that is
    already terminal would be updated again.
    """

    code = "LEDGER_INCONSISTENCY"


class PersistenceWarning(DomainError):
    """Persisting retrieved bars failed; logged only, never surfaced to callers."""

    code = "PERSISTENCE_WARNING"
