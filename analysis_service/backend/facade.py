from __future__ import annotations

import logging

from analysis_service.backend.client import GeminiAnalysisClient
from analysis_service.backend.supervisor import BackendSupervisor
from analysis_service.backend.types import BackendPrompt, SupervisorStatus
from analysis_service.config import (
    ANALYSIS_BACKEND_COMMAND,
    ANALYSIS_BACKEND_MAX_RECONNECT_ATTEMPTS,
    ANALYSIS_BACKEND_RECONNECT_DELAY_SECONDS,
    ANALYSIS_BACKEND_SETTLE_SECONDS,
    ANALYSIS_BACKEND_SHUTDOWN_GRACE_SECONDS,
)
from analysis_service.errors import BackendUnavailable

logger = logging.getLogger(__name__)


class AnalysisBackend:
    """Process lifecycle and model API behind one interface.

    ``call`` only goes out once the supervisor reports the backend ready.
    """

    def __init__(self, *, supervisor: BackendSupervisor, client: GeminiAnalysisClient) -> None:
        self._supervisor = supervisor
        self._client = client

    @classmethod
    def from_config(cls) -> AnalysisBackend:
        supervisor = BackendSupervisor(
            ANALYSIS_BACKEND_COMMAND,
            settle_seconds=ANALYSIS_BACKEND_SETTLE_SECONDS,
            reconnect_delay_seconds=ANALYSIS_BACKEND_RECONNECT_DELAY_SECONDS,
            max_reconnect_attempts=ANALYSIS_BACKEND_MAX_RECONNECT_ATTEMPTS,
            shutdown_grace_seconds=ANALYSIS_BACKEND_SHUTDOWN_GRACE_SECONDS,
        )
        return cls(supervisor=supervisor, client=GeminiAnalysisClient())

    @property
    def client_configured(self) -> bool:
        return self._client.configured

    async def ensure_connected(self) -> bool:
        return await self._supervisor.ensure_connected()

    async def call(self, prompt: BackendPrompt) -> str:
        if not await self._supervisor.ensure_connected():
            status = self._supervisor.status()
            logger.warning(
                "Rejecting analysis call: backend %s after %d reconnect attempts",
                status.state.value,
                status.reconnect_attempts,
            )
            raise BackendUnavailable()
        return await self._client.generate(prompt)

    def status(self) -> SupervisorStatus:
        return self._supervisor.status()

    async def restart(self) -> bool:
        return await self._supervisor.restart()

    async def shutdown(self) -> None:
        await self._supervisor.shutdown()
