# src/quantam_proxy/application/services/provider_router.py
# Copyright (c) Quantam.
# SPDX-License-Identifier: MIT
"""Router / dispatcher over registered provider adapters.

``dispatch`` and ``get_stats`` are the two operations an outer layer needs.
Every result returned by ``dispatch``, success or failure, is read back from
the job ledger so the audit trail and the answer can never disagree. The
router never retries; a caller seeing a ``ProviderError`` may re-dispatch to
another provider listed by :meth:`ProviderRouter.admissible_providers`.
"""

from __future__ import annotations

from collections.abc import Iterable

from quantam_proxy.application.services.provider_adapter import ProviderAdapter
from quantam_proxy.domain.entities.job_log import JobState
from quantam_proxy.domain.entities.provider_stats import HealthSnapshot, ProviderStats
from quantam_proxy.domain.entities.retrieval import RetrievalJobRequest, RetrievalJobResult
from quantam_proxy.domain.exceptions.proxy import (
    ClientError,
    InvalidRequest,
    LedgerInconsistency,
    RetrievalFailure,
    UnknownProvider,
)
from quantam_proxy.domain.interfaces.repositories.job_ledger import JobLedger
from quantam_proxy.infrastructure.logging.logger import get_json_logger

logger = get_json_logger(__name__)


class ProviderRouter:
    """Routes retrieval requests to named provider adapters."""

    def __init__(self, ledger: JobLedger, adapters: Iterable[ProviderAdapter] = ()) -> None:
        """Initialize the router.

        Args:
            ledger: Job ledger shared with the adapters.
            adapters: Adapters to register up front.
        """
        self._ledger = ledger
        self._adapters: dict[str, ProviderAdapter] = {}
        for adapter in adapters:
            self.register(adapter)

    def register(self, adapter: ProviderAdapter) -> None:
        """Register an adapter under its provider name.

        Raises:
            ValueError: If a provider with the same name is already registered.
        """
        if adapter.name in self._adapters:
            raise ValueError(f"Provider already registered: {adapter.name}")
        self._adapters[adapter.name] = adapter

    @property
    def providers(self) -> list[str]:
        """Registered provider names in registration order."""
        return list(self._adapters)

    def adapter(self, provider_name: str) -> ProviderAdapter:
        """Return the adapter for ``provider_name``.

        Raises:
            UnknownProvider: If no adapter is registered under that name.
        """
        try:
            return self._adapters[provider_name]
        except KeyError:
            raise UnknownProvider(
                f"Unknown provider='{provider_name}'",
                details={"registered": self.providers},
            ) from None

    def admissible_providers(self, request: RetrievalJobRequest) -> list[str]:
        """Return registered providers whose capabilities admit ``request``."""
        return [
            name
            for name, adapter in self._adapters.items()
            if adapter.capabilities.is_admissible(request)
        ]

    async def dispatch(
        self, provider_name: str, request: RetrievalJobRequest
    ) -> RetrievalJobResult:
        """Run a retrieval job on the named provider.

        Args:
            provider_name: Registered provider name.
            request: Retrieval request; ``job_id`` reuses a pre-created row.

        Returns:
            The ledger-derived view of the succeeded job.

        Raises:
            UnknownProvider: Nothing was recorded in the ledger.
            ClientError: Job finalized as ClientFailed; ``exc.result`` holds
                the ledger-derived view.
            ProviderError: Job finalized as ProviderFailed; ``exc.result``
                holds the ledger-derived view.
            LedgerInconsistency: The referenced row is missing, not Created,
                or not terminal after the job ran.
        """
        adapter = self.adapter(provider_name)
        job_id = await self._claim(provider_name, request.job_id)

        try:
            await adapter.retrieve(request, job_id)
        except RetrievalFailure as exc:
            exc.result = await self._read_back(job_id)
            raise

        return await self._read_back(job_id)

    async def submit(
        self,
        provider_name: str,
        *,
        symbol: str,
        exchange: str,
        interval: str,
        job_id: int | None = None,
    ) -> RetrievalJobResult:
        """Build a request from raw labels and dispatch it.

        A request that cannot be built (unknown interval label, empty symbol
        or exchange) is still a job: its ledger row is claimed, finalized as
        ClientFailed with an empty url, and the error is raised with
        ``.result`` attached.

        Raises:
            UnknownProvider: Nothing was recorded in the ledger.
            ClientError: The request was rejected; see :meth:`dispatch`.
            ProviderError: See :meth:`dispatch`.
            LedgerInconsistency: See :meth:`dispatch`.
        """
        try:
            request = RetrievalJobRequest(
                symbol=symbol, exchange=exchange, interval=interval, job_id=job_id
            )
        except (ClientError, ValueError) as exc:
            error = exc if isinstance(exc, ClientError) else InvalidRequest(str(exc))
            await self._reject(provider_name, job_id, error)
            raise error from None
        return await self.dispatch(provider_name, request)

    async def _reject(self, provider_name: str, job_id: int | None, error: ClientError) -> None:
        adapter = self.adapter(provider_name)
        claimed = await self._claim(provider_name, job_id)
        await self._ledger.mark_in_flight(claimed)
        await self._ledger.finalize(
            claimed, adapter.name, "", error.status_code, error.ledger_message
        )
        logger.warning(
            "request_rejected",
            extra={"extra": {"job_id": claimed, "provider": adapter.name, "code": error.code}},
        )
        error.result = await self._read_back(claimed)

    async def get_stats(self, provider_name: str) -> ProviderStats:
        """Return the current health snapshot for a provider."""
        return await self.adapter(provider_name).get_stats()

    async def ping_health(self, provider_name: str) -> HealthSnapshot:
        """Ping a provider (advisory)."""
        return await self.adapter(provider_name).ping_health()

    async def _claim(self, provider_name: str, job_id: int | None) -> int:
        if job_id is None:
            return await self._ledger.create(provider_name)

        entry = await self._ledger.find(job_id)
        if entry.state is not JobState.CREATED:
            raise LedgerInconsistency(
                f"Job {job_id} is {entry.state.value}, expected created",
                details={"job_id": job_id, "state": entry.state.value},
            )
        if entry.provider_name != provider_name:
            logger.info(
                "job_rerouted",
                extra={
                    "extra": {
                        "job_id": job_id,
                        "from": entry.provider_name,
                        "to": provider_name,
                    }
                },
            )
        return job_id

    async def _read_back(self, job_id: int) -> RetrievalJobResult:
        entry = await self._ledger.find(job_id)
        if not entry.is_terminal:
            raise LedgerInconsistency(
                f"Job {job_id} is not terminal after retrieval",
                details={"job_id": job_id, "state": entry.state.value},
            )
        return RetrievalJobResult.from_entry(entry)
