"""Selects the backend strategy once, at startup."""
import asyncio
import logging
from enum import Enum
from typing import Awaitable, Callable, Optional

from ..core.exceptions import BackendUnavailableError
from .base import Backend
from .hosted import HostedBackend
from .local import LocalBackend

logger = logging.getLogger(__name__)


class GatewayState(str, Enum):
    PENDING = "pending"
    HOSTED = "hosted"
    LOCAL = "local"
    UNAVAILABLE = "unavailable"


class BackendGateway:
    """Hands out the backend for a flow.

    With no hosted backend configured the local backend is the primary one.
    When a configured hosted backend cannot be reached after
    ``attempts`` pings, non-admin flows may fall back to the local backend
    and admin flows get ``BackendUnavailableError``.
    """

    def __init__(
        self,
        local: LocalBackend,
        hosted: Optional[HostedBackend] = None,
        attempts: int = 3,
        delay: float = 0.5,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.local = local
        self.hosted = hosted
        self.attempts = max(1, attempts)
        self.delay = delay
        self._sleep = sleep
        self._task: Optional[asyncio.Task] = None
        self.state = GatewayState.PENDING

    async def _probe(self) -> GatewayState:
        if self.hosted is None:
            logger.info("No hosted backend configured, using local storage")
            return GatewayState.LOCAL

        for attempt in range(1, self.attempts + 1):
            if await self.hosted.ping():
                logger.info("Hosted backend ready after %d attempt(s)", attempt)
                return GatewayState.HOSTED
            if attempt < self.attempts:
                await self._sleep(self.delay)

        logger.error("Hosted backend unreachable after %d attempts", self.attempts)
        return GatewayState.UNAVAILABLE

    async def initialize(self) -> GatewayState:
        """Run the readiness probe once; later calls share its result."""
        if self._task is None:
            self._task = asyncio.ensure_future(self._probe())
        self.state = await self._task
        return self.state

    async def resolve(self, allow_fallback: bool = True) -> Backend:
        state = await self.initialize()
        if state == GatewayState.HOSTED:
            return self.hosted
        if state == GatewayState.LOCAL:
            return self.local
        if allow_fallback:
            return self.local
        raise BackendUnavailableError()

    @property
    def mode(self) -> str:
        return self.state.value

    async def close(self) -> None:
        if self.hosted is not None:
            await self.hosted.close()
