"""
Poll-until loop for a submitted render.

Sleeps a fixed interval before every attempt and gives up after a fixed number
of attempts, so the effective timeout is interval * max_attempts. Transport
errors count against the budget but never end the loop early; an explicit
provider failure ends it immediately. `sleep` is injectable so tests can run
the loop without waiting.
"""
import logging
import time
from typing import Callable

from enhancer.services.render_jobs.errors import RenderFailure, RenderTimeout
from enhancer.services.rendering.base import RenderClient, RenderState, RenderStatus, RenderUnavailable
from enhancer.utils.metrics import render_polls_total

logger = logging.getLogger(__name__)


class RenderPoller:
    def __init__(
        self,
        client: RenderClient,
        interval_seconds: float,
        max_attempts: int,
        sleep: Callable[[float], None] = time.sleep,
        on_attempt: Callable[[int], None] | None = None,
    ) -> None:
        self.client = client
        self.interval_seconds = interval_seconds
        self.max_attempts = max_attempts
        self.sleep = sleep
        self.on_attempt = on_attempt

    def wait(self, render_id: str, attempts_made: int = 0) -> RenderStatus:
        """
        Poll until the render is done. Returns the DONE status (with result_url).
        Raises RenderFailure when the provider reports failure, RenderTimeout when
        the attempt budget (including attempts_made from an earlier run) is spent.
        """
        attempt = attempts_made
        last_error: str | None = None
        while attempt < self.max_attempts:
            self.sleep(self.interval_seconds)
            attempt += 1
            if self.on_attempt is not None:
                self.on_attempt(attempt)

            try:
                status = self.client.get_status(render_id)
            except RenderUnavailable as e:
                last_error = str(e)
                render_polls_total.labels(renderer=self.client.name, outcome="transport_error").inc()
                logger.warning(
                    "render_poll_transport_error",
                    extra={"render_id": render_id, "attempt": attempt, "max_attempts": self.max_attempts, "error": last_error},
                )
                continue

            if status.state is RenderState.DONE:
                render_polls_total.labels(renderer=self.client.name, outcome="done").inc()
                return status
            if status.state is RenderState.FAILED:
                render_polls_total.labels(renderer=self.client.name, outcome="failed").inc()
                raise RenderFailure(status.error or "Unknown error")

            render_polls_total.labels(renderer=self.client.name, outcome="pending").inc()
            logger.debug(
                "render_poll_pending",
                extra={"render_id": render_id, "attempt": attempt, "status": status.state.value},
            )

        message = f"Render timed out after {self.max_attempts} poll attempts"
        if last_error:
            message = f"{message} (last error: {last_error})"
        raise RenderTimeout(message)
