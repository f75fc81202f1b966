"""Minimal work queue driving a client certificate controller."""

import asyncio
import logging
from typing import Optional

from ..core.config import ControllerConfig
from ..core.errors import ClientCertError
from ..core.models import ReconcileState
from .controller import ClientCertificateController

_LOGGER = logging.getLogger(__name__)


class ControllerRunner:
    """Invokes ``reconcile`` on a resync timer and on change notifications.

    Triggers coalesce while one is queued, so at most one reconcile is in
    flight and one is waiting. Failed passes are retried with exponential
    backoff.
    """

    def __init__(
        self,
        controller: ClientCertificateController,
        resync_interval: float = 300.0,
        reconcile_timeout: float = 60.0,
        backoff_base: float = 1.0,
        backoff_max: float = 300.0,
    ) -> None:
        """Initialize the runner.

        Args:
            controller: The controller to drive
            resync_interval: Seconds between periodic passes
            reconcile_timeout: Deadline of a single pass in seconds
            backoff_base: First retry delay in seconds after a failure
            backoff_max: Upper bound of the retry delay in seconds
        """
        self.controller = controller
        self.resync_interval = resync_interval
        self.reconcile_timeout = reconcile_timeout
        self.backoff_base = backoff_base
        self.backoff_max = backoff_max
        self.consecutive_failures = 0
        self.last_state: Optional[ReconcileState] = None
        self._queue: asyncio.Queue[str] = asyncio.Queue(maxsize=1)
        self._tasks: list[asyncio.Task[None]] = []

    @classmethod
    def from_config(
        cls, controller: ClientCertificateController, config: ControllerConfig
    ) -> "ControllerRunner":
        """Create a runner with the intervals of a configuration."""
        return cls(
            controller,
            resync_interval=config.resync_interval_seconds,
            reconcile_timeout=config.reconcile_timeout_seconds,
        )

    @property
    def ready(self) -> bool:
        """Whether the last pass succeeded."""
        return self.consecutive_failures == 0

    def trigger(self, reason: str = "manual") -> None:
        """Request a reconcile pass."""
        try:
            self._queue.put_nowait(reason)
        except asyncio.QueueFull:
            _LOGGER.debug("Reconcile already queued, dropping trigger %s", reason)

    def backoff(self) -> float:
        """Delay before retrying after the current number of failures."""
        if self.consecutive_failures == 0:
            return 0.0
        delay = self.backoff_base * 2 ** (self.consecutive_failures - 1)
        return min(delay, self.backoff_max)

    async def run_once(self, reason: str = "manual") -> Optional[ReconcileState]:
        """Run a single pass under the reconcile deadline.

        Returns:
            The resulting state, or None if the pass failed
        """
        try:
            state = await asyncio.wait_for(
                self.controller.reconcile(reason), timeout=self.reconcile_timeout
            )
        except asyncio.TimeoutError:
            self.consecutive_failures += 1
            _LOGGER.warning(
                "Reconcile of %s timed out after %ss (%d consecutive failures)",
                self.controller.secret_key,
                self.reconcile_timeout,
                self.consecutive_failures,
            )
            return None
        except ClientCertError as e:
            self.consecutive_failures += 1
            _LOGGER.warning(
                "Reconcile of %s failed (%d consecutive failures): %s",
                self.controller.secret_key,
                self.consecutive_failures,
                e,
            )
            return None

        self.consecutive_failures = 0
        self.last_state = state
        return state

    async def run(self) -> None:
        """Process triggers until cancelled."""
        self.trigger("startup")
        while True:
            try:
                reason = await asyncio.wait_for(
                    self._queue.get(), timeout=self.resync_interval
                )
            except asyncio.TimeoutError:
                reason = "resync"

            if await self.run_once(reason) is None:
                await asyncio.sleep(self.backoff())
                self.trigger("retry")

    def start_watches(self) -> None:
        """Turn secret and signing request changes into triggers."""
        self._tasks.append(asyncio.create_task(self._watch_secret()))
        self._tasks.append(asyncio.create_task(self._watch_requests()))

    async def _watch_secret(self) -> None:
        options = self.controller.client_cert_options
        while True:
            try:
                async for version in self.controller.secret_store.subscribe(
                    options.secret_namespace, options.secret_name
                ):
                    self.trigger(f"secret version {version}")
            except ClientCertError as e:
                _LOGGER.warning("Secret watch failed: %s", e)
            except Exception:
                _LOGGER.exception("Secret watch of %s stopped", self.controller.secret_key)
            await asyncio.sleep(self.backoff_base)

    async def _watch_requests(self) -> None:
        while True:
            try:
                async for name in self.controller.csr_control.subscribe():
                    if name == self.controller.state.pending_request_name:
                        self.trigger(f"csr {name}")
            except ClientCertError as e:
                _LOGGER.warning("Signing request watch failed: %s", e)
            except Exception:
                _LOGGER.exception("Signing request watch stopped")
            await asyncio.sleep(self.backoff_base)

    async def close(self) -> None:
        """Stop the watches."""
        for task in self._tasks:
            task.cancel()
        await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks.clear()
