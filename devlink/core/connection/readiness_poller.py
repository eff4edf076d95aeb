"""
Readiness Poller - Decides when an authenticated session can serve requests.

Authentication succeeding does not mean the device answers yet. The poller
queries a scalar metric (a temperature reading on current devices) on a
fixed cadence. The session counts as ready on the first positive reading,
or once the attempt ceiling is reached, because some devices never report
a usable metric at all.

The poller keeps running after readiness so the published metric stays
fresh, until the manager stops it.
"""

from __future__ import annotations

import asyncio
from typing import Awaitable, Callable, Optional

from devlink.core.asyncio_utils import cancel_and_wait, create_logged_task
from devlink.core.errors import ProbeFailed
from devlink.core.logging_utils import get_module_logger
from devlink.core.settings import DEFAULT_MAX_PROBE_ATTEMPTS, DEFAULT_PROBE_INTERVAL
from devlink.core.types import UNKNOWN_METRIC, ConnectionSession, Metric

logger = get_module_logger("ReadinessPoller")

ReadyCallback = Callable[[ConnectionSession, Optional[float]], Awaitable[object]]
MetricCallback = Callable[[Metric], None]
CurrentSessionCheck = Callable[[ConnectionSession], bool]


class ReadinessPoller:
    """
    Probes one session until it is ready, then keeps reporting its metric.

    Usage:
        poller = ReadinessPoller(
            session,
            on_ready=manager.on_readiness_achieved,
            on_metric=store.set_metric,
            is_current=manager.is_current_session,
        )
        await poller.start()
        ...
        await poller.stop()
    """

    def __init__(
        self,
        session: ConnectionSession,
        on_ready: ReadyCallback,
        on_metric: MetricCallback,
        is_current: CurrentSessionCheck,
        interval: float = DEFAULT_PROBE_INTERVAL,
        max_attempts: int = DEFAULT_MAX_PROBE_ATTEMPTS,
    ):
        self._session = session
        self._on_ready = on_ready
        self._on_metric = on_metric
        self._is_current = is_current
        self.interval = interval
        self.max_attempts = max_attempts

        self._task: Optional[asyncio.Task] = None
        self._stopped = False

    @property
    def session(self) -> ConnectionSession:
        return self._session

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._stopped

    async def start(self) -> None:
        if self._task is not None or self._stopped:
            return
        self._task = create_logged_task(
            self._poll_loop(),
            logger=logger,
            name=f"readiness-poller-{self._session.session_id}",
        )
        logger.debug(
            "Polling session %d every %.1fs (ceiling %d attempts)",
            self._session.session_id, self.interval, self.max_attempts,
        )

    async def stop(self) -> None:
        """Stop polling. Safe to call repeatedly, including from a probe."""
        if self._stopped:
            return
        self._stopped = True
        task, self._task = self._task, None
        await cancel_and_wait(task)
        logger.debug("Stopped polling session %d", self._session.session_id)

    def _is_live(self) -> bool:
        return not self._stopped and self._is_current(self._session)

    async def _poll_loop(self) -> None:
        while not self._stopped:
            await self.probe_once()
            await asyncio.sleep(self.interval)

    async def _probe(self) -> Optional[float]:
        try:
            return await self._session.client.get_metric()
        except asyncio.CancelledError:
            raise
        except Exception as e:
            raise ProbeFailed(f"{type(e).__name__}: {e}") from e

    async def _read_metric(self) -> Optional[float]:
        try:
            return await self._probe()
        except ProbeFailed as e:
            logger.debug("Probe %d failed: %s", self._session.probe_count, e)
            return None

    async def probe_once(self) -> bool:
        """Run one probe cycle. Returns True if it triggered readiness."""
        session = self._session
        if not self._is_live():
            return False

        attempt = session.next_probe()
        metric = await self._read_metric()

        # Torn down while the probe was in flight
        if not self._is_live():
            logger.debug("Discarding probe %d for stale session %d", attempt, session.session_id)
            return False

        triggered = False
        satisfied = (metric is not None and metric > 0) or attempt >= self.max_attempts
        if satisfied and not session.ready:
            if metric is None or metric <= 0:
                logger.info(
                    "No usable metric after %d probes, assuming session %d is ready",
                    attempt, session.session_id,
                )
            await self._on_ready(session, metric)
            triggered = True

        if self._is_live():
            self._on_metric(metric if metric is not None else UNKNOWN_METRIC)
        return triggered


__all__ = ["ReadinessPoller", "ReadyCallback", "MetricCallback", "CurrentSessionCheck"]
