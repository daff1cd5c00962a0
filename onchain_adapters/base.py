"""
Base Snapshot Source - Abstract interface for game account providers.

All sources MUST:
- Return a whole snapshot per observation, never a partial one
- Report a vanished account as an ended game, not as zeros
- Keep a subscription alive across transient failures
- Never block the simulation clock
"""

import asyncio
import logging
import time
from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, List, Optional

import aiohttp

from core.constants import DEFAULT_POLL_INTERVAL_SECONDS
from onchain_adapters.exceptions import (
    DecodeError,
    FetchError,
    RateLimitError,
    SnapshotSourceError,
)
from onchain_adapters.models import (
    SnapshotUpdate,
    SourceHealth,
    SourceIncident,
    SourceMetadata,
    SourceStatus,
)


logger = logging.getLogger(__name__)


SnapshotCallback = Callable[[SnapshotUpdate], None]

_UNSET = object()


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SnapshotSubscription:
    """
    Handle for an active subscription.

    Polling sources own a task; push sources only own a cancel hook.
    """

    def __init__(
        self,
        game_id: str,
        on_cancel: Optional[Callable[[], None]] = None,
    ) -> None:
        self.game_id = game_id
        self._on_cancel = on_cancel
        self._task: Optional[asyncio.Task] = None
        self._cancelled = False

    def attach(self, task: asyncio.Task) -> None:
        self._task = task

    @property
    def active(self) -> bool:
        if self._cancelled:
            return False
        if self._task is not None:
            return not self._task.done()
        return True

    def cancel(self) -> None:
        """Stop delivering updates."""
        if self._cancelled:
            return
        self._cancelled = True
        if self._task is not None and not self._task.done():
            self._task.cancel()
        if self._on_cancel is not None:
            self._on_cancel()

    async def wait_closed(self) -> None:
        """Wait until the polling task has finished."""
        if self._task is None:
            return
        try:
            await self._task
        except asyncio.CancelledError:
            logger.debug(f"Subscription for {self.game_id} cancelled")

    def __repr__(self) -> str:
        return f"<SnapshotSubscription(game_id={self.game_id}, active={self.active})>"


class BaseSnapshotSource(ABC):
    """
    Abstract base class for all snapshot sources.

    Each source must:
    1. Implement fetch_raw() - Get the raw account (None when it is gone)
    2. Implement normalize() - Convert raw data to a SnapshotUpdate
    3. Implement health_check() - Verify connectivity
    4. Implement metadata() - Return source metadata

    Features:
    - Limited retries with backoff
    - Polling subscriptions that emit only on change
    - Health tracking and an incident log
    """

    DEFAULT_TIMEOUT = 20.0
    MAX_RETRIES = 2
    RETRY_BACKOFF_BASE = 1.5
    DEGRADED_THRESHOLD = 3
    UNAVAILABLE_THRESHOLD = 5

    def __init__(
        self,
        timeout: float = DEFAULT_TIMEOUT,
        poll_interval: float = DEFAULT_POLL_INTERVAL_SECONDS,
        session: Optional[aiohttp.ClientSession] = None,
    ) -> None:
        if poll_interval <= 0:
            raise ValueError("poll_interval must be > 0")

        self._timeout = timeout
        self._poll_interval = poll_interval
        self._session = session
        self._owns_session = session is None

        self._health = SourceHealth(
            status=SourceStatus.UNKNOWN,
            last_check=_utcnow(),
        )
        self._last_successful_request: Optional[datetime] = None

        self._incidents: List[SourceIncident] = []
        self._max_incidents = 100

        self._subscriptions: List[SnapshotSubscription] = []

    @property
    @abstractmethod
    def name(self) -> str:
        """Unique identifier for this source."""
        pass

    @property
    def poll_interval(self) -> float:
        return self._poll_interval

    @abstractmethod
    async def fetch_raw(self, game_id: str) -> Optional[Any]:
        """
        Fetch the raw game account.

        Returns:
            Raw account data, or None when the account does not exist

        Raises:
            FetchError: If fetch fails
        """
        pass

    @abstractmethod
    def normalize(self, raw_data: Optional[Any], game_id: str) -> SnapshotUpdate:
        """
        Convert raw account data to a SnapshotUpdate.

        Raises:
            DecodeError: If the data cannot be decoded
        """
        pass

    @abstractmethod
    async def health_check(self) -> SourceHealth:
        """Check provider connectivity and health."""
        pass

    @abstractmethod
    def metadata(self) -> SourceMetadata:
        """Return source metadata."""
        pass

    # ─────────────────────────────────────────────────────────────
    # Fetching
    # ─────────────────────────────────────────────────────────────

    async def fetch_snapshot(self, game_id: str) -> SnapshotUpdate:
        """
        Fetch and decode the current state of a game (main entry point).

        Returns:
            SnapshotUpdate; `ended` is set when the account is gone

        Raises:
            SnapshotSourceError: If the account could not be read or decoded
        """
        raw = await self._fetch_tracked(game_id)
        return self._normalize_tracked(raw, game_id)

    async def _fetch_tracked(self, game_id: str) -> Optional[Any]:
        start = time.monotonic()
        try:
            raw = await asyncio.wait_for(
                self._fetch_with_retry(game_id),
                timeout=self._timeout,
            )
        except asyncio.TimeoutError as e:
            error = FetchError("Timeout", self.name, game_id, original_error=e)
            self._on_error(error, game_id)
            raise error from e
        except SnapshotSourceError as e:
            self._on_error(e, game_id)
            raise

        self._health.latency_ms = (time.monotonic() - start) * 1000
        self._on_success()
        return raw

    def _normalize_tracked(self, raw: Optional[Any], game_id: str) -> SnapshotUpdate:
        try:
            return self.normalize(raw, game_id)
        except DecodeError as e:
            self._on_error(e, game_id)
            raise

    async def _fetch_with_retry(self, game_id: str) -> Optional[Any]:
        """Fetch with limited retries."""
        last_error: Optional[Exception] = None

        for attempt in range(self.MAX_RETRIES):
            try:
                self._health.requests_total += 1
                return await self.fetch_raw(game_id)

            except RateLimitError as e:
                # Don't retry on rate limit
                self._health.status = SourceStatus.RATE_LIMITED
                if e.retry_after_seconds:
                    self._health.rate_limit_reset = _utcnow() + timedelta(
                        seconds=e.retry_after_seconds
                    )
                raise

            except FetchError as e:
                if e.status_code and 400 <= e.status_code < 500:
                    raise

                last_error = e
                if attempt + 1 < self.MAX_RETRIES:
                    wait_time = self.RETRY_BACKOFF_BASE ** attempt
                    logger.warning(
                        f"[{self.name}] Retry {attempt + 1}/{self.MAX_RETRIES} "
                        f"in {wait_time:.1f}s: {e}"
                    )
                    await asyncio.sleep(wait_time)

        raise FetchError(
            message=f"Failed after {self.MAX_RETRIES} retries",
            source_name=self.name,
            game_id=game_id,
            original_error=last_error,
        )

    # ─────────────────────────────────────────────────────────────
    # Subscriptions
    # ─────────────────────────────────────────────────────────────

    def subscribe(
        self,
        game_id: str,
        on_update: SnapshotCallback,
        poll_interval: Optional[float] = None,
    ) -> SnapshotSubscription:
        """
        Poll a game and call `on_update` whenever its account changes.

        The first successful read is always delivered. Polling stops
        after an ended update. Must be called from the event loop.
        """
        interval = poll_interval or self._poll_interval
        subscription = SnapshotSubscription(
            game_id,
            on_cancel=lambda: self._forget(subscription),
        )
        task = asyncio.get_running_loop().create_task(
            self._poll(game_id, on_update, interval)
        )
        subscription.attach(task)
        self._subscriptions.append(subscription)
        logger.info(f"[{self.name}] Polling {game_id} every {interval:.1f}s")
        return subscription

    async def _poll(
        self,
        game_id: str,
        on_update: SnapshotCallback,
        interval: float,
    ) -> None:
        last_raw: Any = _UNSET

        while True:
            try:
                raw = await self._fetch_tracked(game_id)
                if raw != last_raw:
                    update = self._normalize_tracked(raw, game_id)
                    last_raw = raw
                    self._deliver(on_update, update)
                    if update.ended:
                        logger.info(f"[{self.name}] Game {game_id} ended, polling stopped")
                        return
            except SnapshotSourceError as e:
                logger.warning(f"[{self.name}] Poll failed for {game_id}: {e}")

            await asyncio.sleep(interval)

    def _deliver(self, on_update: SnapshotCallback, update: SnapshotUpdate) -> None:
        try:
            on_update(update)
        except Exception as e:
            logger.exception(f"[{self.name}] Update callback failed for {update.game_id}: {e}")

    def _forget(self, subscription: SnapshotSubscription) -> None:
        if subscription in self._subscriptions:
            self._subscriptions.remove(subscription)

    @property
    def subscriptions(self) -> List[SnapshotSubscription]:
        return [s for s in self._subscriptions if s.active]

    # ─────────────────────────────────────────────────────────────
    # HTTP Helpers
    # ─────────────────────────────────────────────────────────────

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create HTTP session."""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self._timeout),
                headers=self._get_default_headers(),
            )
            self._owns_session = True
        return self._session

    def _get_default_headers(self) -> Dict[str, str]:
        return {
            "Accept": "application/json",
            "Content-Type": "application/json",
            "User-Agent": "Equilibrate/0.1",
        }

    # ─────────────────────────────────────────────────────────────
    # Health & Error Tracking
    # ─────────────────────────────────────────────────────────────

    def _on_success(self) -> None:
        """Handle successful request."""
        self._last_successful_request = _utcnow()
        self._health.last_check = self._last_successful_request
        self._health.consecutive_failures = 0

        if self._health.status != SourceStatus.HEALTHY:
            if self._health.status != SourceStatus.UNKNOWN:
                logger.info(f"[{self.name}] Recovered to HEALTHY status")
            self._health.status = SourceStatus.HEALTHY

    def _on_error(self, error: SnapshotSourceError, game_id: Optional[str] = None) -> None:
        """Handle request error."""
        now = _utcnow()
        self._health.error_count += 1
        self._health.consecutive_failures += 1
        self._health.last_error = str(error)
        self._health.last_error_time = now
        self._health.last_check = now

        if isinstance(error, RateLimitError):
            self._health.status = SourceStatus.RATE_LIMITED
        elif self._health.consecutive_failures >= self.UNAVAILABLE_THRESHOLD:
            if self._health.status != SourceStatus.UNAVAILABLE:
                self._health.status = SourceStatus.UNAVAILABLE
                logger.error(f"[{self.name}] Marked UNAVAILABLE")
        elif self._health.consecutive_failures >= self.DEGRADED_THRESHOLD:
            if self._health.status != SourceStatus.DEGRADED:
                self._health.status = SourceStatus.DEGRADED
                logger.warning(f"[{self.name}] Marked DEGRADED")

        self._log_incident(error, game_id)

    def _log_incident(self, error: SnapshotSourceError, game_id: Optional[str]) -> None:
        incident = SourceIncident(
            source_name=self.name,
            incident_type=error.__class__.__name__,
            timestamp=_utcnow(),
            error_message=str(error),
            game_id=game_id,
        )

        self._incidents.append(incident)
        if len(self._incidents) > self._max_incidents:
            self._incidents = self._incidents[-self._max_incidents:]

        logger.warning(f"[{self.name}] Incident: {error}")

    def get_health(self) -> SourceHealth:
        """Get current health status."""
        return self._health

    def get_incidents(self, limit: int = 10) -> List[SourceIncident]:
        """Get recent incidents."""
        return self._incidents[-limit:]

    def is_healthy(self) -> bool:
        return self._health.is_healthy()

    def is_usable(self) -> bool:
        return self._health.is_usable()

    # ─────────────────────────────────────────────────────────────
    # Lifecycle
    # ─────────────────────────────────────────────────────────────

    async def close(self) -> None:
        """Cancel subscriptions and close resources."""
        subscriptions = list(self._subscriptions)
        for subscription in subscriptions:
            subscription.cancel()
        for subscription in subscriptions:
            await subscription.wait_closed()

        if self._owns_session and self._session and not self._session.closed:
            await self._session.close()

    async def __aenter__(self) -> "BaseSnapshotSource":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__}(name={self.name}, status={self._health.status.value})>"
