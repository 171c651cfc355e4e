"""Push locally owned counters to the user-service with bounded retries."""

from __future__ import annotations

import asyncio
from typing import Awaitable, Callable

from loguru import logger

from business_api.observability.membership_sync import (
    MembershipSyncObservabilityStore,
    get_membership_sync_store,
)
from business_api.services.identity import MembershipCounterUpdate, UserServiceClient

ClientFactory = Callable[[], UserServiceClient]
Sleep = Callable[[float], Awaitable[None]]


class MembershipCounterSync:
    """Best-effort counter sync; failures are logged and recorded, never raised."""

    def __init__(
        self,
        client_factory: ClientFactory,
        *,
        max_attempts: int = 3,
        backoff_seconds: float = 0.5,
        sleep: Sleep | None = None,
        store: MembershipSyncObservabilityStore | None = None,
    ) -> None:
        self._client_factory = client_factory
        self.max_attempts = max(max_attempts, 1)
        self.backoff_seconds = max(backoff_seconds, 0.0)
        self._sleep = sleep or asyncio.sleep
        self._store = store or get_membership_sync_store()

    def _delay_for(self, attempt: int) -> float:
        return self.backoff_seconds * (2 ** (attempt - 1))

    async def push(self, update: MembershipCounterUpdate) -> bool:
        """Return ``True`` once the user-service accepted the update."""

        context = {"user_id": update.user_id, "business_id": str(update.business_id)}
        last_error: Exception | None = None

        for attempt in range(1, self.max_attempts + 1):
            try:
                client = self._client_factory()
                await client.update_membership_counters(update)
            except Exception as exc:  # noqa: BLE001 - side effect must not fail the caller
                last_error = exc
                logger.warning(
                    "Membership counter sync attempt failed",
                    attempt=attempt,
                    max_attempts=self.max_attempts,
                    error=str(exc),
                    **context,
                )
                if attempt < self.max_attempts:
                    await self._sleep(self._delay_for(attempt))
                continue

            self._store.record_success(attempts=attempt)
            logger.info("Membership counters synced", attempts=attempt, **context)
            return True

        self._store.record_failure(str(last_error))
        logger.opt(exception=last_error).error(
            "Membership counter sync abandoned",
            attempts=self.max_attempts,
            payload=update.as_payload(),
            **context,
        )
        return False


__all__ = ["MembershipCounterSync"]
