"""
Poll-until-terminal utility shared by every asynchronous provider client.

Providers run jobs on their side and expose a status endpoint; callers poll
it at a fixed interval for a bounded number of attempts. Exceeding the bound
is a ProviderTimeoutError, which is distinct from the provider reporting the
job as failed (ProviderJobFailedError). Neither is retried here — the caller
decides whether to abort or degrade.
"""
import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Optional

logger = logging.getLogger('services.polling')


class ProviderError(Exception):
    """Base class for scrape provider failures."""


class ProviderTimeoutError(ProviderError, TimeoutError):
    """Job did not reach a terminal state within the polling ceiling."""
    def __init__(self, job_id, attempts, ceiling_seconds):
        self.job_id = job_id
        self.attempts = attempts
        self.ceiling_seconds = ceiling_seconds
        super().__init__(
            f"Job {job_id} did not finish after {attempts} polls (~{ceiling_seconds:.0f}s)"
        )


class ProviderJobFailedError(ProviderError):
    """Provider reported the job as failed (or aborted / timed out on its side)."""
    def __init__(self, job_id, status, detail=''):
        self.job_id = job_id
        self.status = status
        self.detail = detail
        msg = f"Job {job_id} ended with status {status}"
        if detail:
            msg += f": {detail}"
        super().__init__(msg)


@dataclass(frozen=True)
class PollPolicy:
    """Fixed-interval retry policy for status polling."""
    interval: float = 2.0
    max_attempts: int = 30

    def __post_init__(self):
        if self.interval < 0:
            raise ValueError("interval must be >= 0")
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")

    @property
    def ceiling(self) -> float:
        """Upper bound on time spent waiting, in seconds."""
        return self.interval * self.max_attempts


def poll_until_terminal(
    fetch: Callable[[], Any],
    is_terminal: Callable[[Any], bool],
    policy: PollPolicy,
    job_id: str = '',
    on_attempt: Optional[Callable[[int, int], None]] = None,
    sleep: Callable[[float], None] = time.sleep,
) -> Any:
    """
    Call fetch() every policy.interval seconds until is_terminal(result).

    Args:
        fetch:       Returns the current job state (provider-specific).
        is_terminal: True when the state is final (success or failure).
        policy:      Interval and attempt bound.
        job_id:      Used in logs and in the timeout error.
        on_attempt:  Called as on_attempt(attempt, max_attempts) after each
                     non-terminal poll — progress/heartbeat hook.
        sleep:       Injected for tests.

    Returns:
        The first terminal state returned by fetch().

    Raises:
        ProviderTimeoutError: no terminal state within policy.max_attempts.
    """
    for attempt in range(1, policy.max_attempts + 1):
        sleep(policy.interval)
        state = fetch()
        if is_terminal(state):
            logger.debug("Job %s terminal after %d polls", job_id, attempt)
            return state
        if on_attempt:
            on_attempt(attempt, policy.max_attempts)

    logger.warning("Job %s still running after %d polls", job_id, policy.max_attempts)
    raise ProviderTimeoutError(job_id, policy.max_attempts, policy.ceiling)
