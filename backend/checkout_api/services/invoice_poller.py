"""
Client-side invoice readiness poller.

A bounded retry state machine:

    waiting(attempt) --ready--> ready(url)          terminal, success
    waiting(attempt) --not ready / error--> waiting(attempt + 1)
    waiting(max_attempts) --> exhausted             terminal, "check back later"

A failed query counts as "not ready yet" so a network blip costs one attempt
instead of aborting the whole poll.
"""
import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, replace
from enum import Enum
from typing import Optional

import httpx

from checkout_api.core.config import settings
from checkout_api.core.logging import get_logger
from checkout_api.schemas.invoice import InvoiceStatusResponse

logger = get_logger(__name__)

StatusQuery = Callable[[str], Awaitable[InvoiceStatusResponse]]


class PollPhase(str, Enum):
    WAITING = "waiting"
    READY = "ready"
    EXHAUSTED = "exhausted"


@dataclass(frozen=True)
class PollState:
    """Immutable poller state."""

    phase: PollPhase = PollPhase.WAITING
    attempt: int = 0
    invoice_url: Optional[str] = None

    @property
    def terminal(self) -> bool:
        return self.phase != PollPhase.WAITING


class InvoiceReadinessPoller:
    """Polls invoice readiness for one session until ready or out of attempts."""

    def __init__(
        self,
        query: StatusQuery,
        *,
        max_attempts: Optional[int] = None,
        interval: Optional[float] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.query = query
        self.max_attempts = max_attempts if max_attempts is not None else settings.invoice_poll_max_attempts
        self.interval = interval if interval is not None else settings.invoice_poll_interval_seconds
        self.sleep = sleep
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")

    async def tick(self, state: PollState, session_id: str) -> PollState:
        """Run one query and return the next state."""
        if state.terminal:
            return state

        try:
            result = await self.query(session_id)
        except Exception as e:
            logger.warning(
                "Invoice status query failed",
                session_id=session_id,
                attempt=state.attempt + 1,
                error=str(e),
            )
            result = None

        if result is not None and result.ready and result.invoice_url:
            return replace(state, phase=PollPhase.READY, invoice_url=result.invoice_url)

        attempt = state.attempt + 1
        if attempt >= self.max_attempts:
            return replace(state, phase=PollPhase.EXHAUSTED, attempt=attempt)
        return replace(state, attempt=attempt)

    async def run(self, session_id: str) -> PollState:
        """Poll until a terminal state, sleeping ``interval`` between queries."""
        state = PollState()
        while True:
            state = await self.tick(state, session_id)
            if state.terminal:
                break
            await self.sleep(self.interval)

        logger.info(
            "Invoice polling finished",
            session_id=session_id,
            phase=state.phase.value,
            attempts=state.attempt,
        )
        return state


def http_status_query(client: httpx.AsyncClient, base_url: str = "") -> StatusQuery:
    """Build a query against ``GET /invoice-status?session_id=``."""

    async def query(session_id: str) -> InvoiceStatusResponse:
        response = await client.get(
            f"{base_url}/invoice-status",
            params={"session_id": session_id},
            headers={"Cache-Control": "no-store"},
        )
        response.raise_for_status()
        return InvoiceStatusResponse.model_validate(response.json())

    return query
