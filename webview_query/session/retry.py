"""
Peer resolution retry policy.

The loop is a small state machine:

    RESOLVING ──ok──────────────▶ RESOLVED
        │  ├─RateLimitSignal──▶ WAITING_RATE_LIMIT ──sleep(N + padding)──▶ RESOLVING
        │  └─TimeoutFailure───▶ WAITING_TIMEOUT ──sleep(delay)──▶ RESOLVING
        └─other / bound hit───▶ FAILED

Rate-limit waits are not counted and may repeat without bound. Timeout
failures are counted; the one that brings the counter to ``max_attempts``
fails with RetryExhausted instead of sleeping.
"""

import asyncio
from enum import Enum
from typing import Any, Awaitable, Callable, Optional

from ..errors import RateLimitSignal, RetryExhausted, TimeoutFailure


class ResolveState(Enum):
    RESOLVING = "resolving"
    WAITING_RATE_LIMIT = "waiting_rate_limit"
    WAITING_TIMEOUT = "waiting_timeout"
    RESOLVED = "resolved"
    FAILED = "failed"


SleepFunc = Callable[[float], Awaitable[Any]]
TransitionHook = Callable[["PeerResolutionPolicy", ResolveState, BaseException], None]


class PeerResolutionPolicy:
    """Drive an async lookup through the resolution state machine.

    Example:
        policy = PeerResolutionPolicy(max_attempts=5)
        peer = await policy.run(lambda: client.resolve_peer("some_bot"))
    """

    def __init__(
        self,
        max_attempts: int = 5,
        timeout_delay: float = 5.0,
        rate_limit_padding: float = 3.0,
        sleep: Optional[SleepFunc] = None,
        on_transition: Optional[TransitionHook] = None,
    ):
        """Initialize the policy.

        Args:
            max_attempts: Timeout failures allowed before giving up
            timeout_delay: Seconds to sleep after a timeout failure
            rate_limit_padding: Seconds added to every rate-limit wait
            sleep: Awaitable sleep, ``asyncio.sleep`` by default
            on_transition: Called with (policy, new_state, error) on each
                failure-driven transition, before any sleep
        """
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.max_attempts = max_attempts
        self.timeout_delay = timeout_delay
        self.rate_limit_padding = rate_limit_padding
        self._sleep = sleep or asyncio.sleep
        self._on_transition = on_transition
        self.state = ResolveState.RESOLVING
        self.attempts = 0

    def rate_limit_delay(self, signal: RateLimitSignal) -> float:
        return signal.seconds + self.rate_limit_padding

    async def run(self, lookup: Callable[[], Awaitable[Any]]) -> Any:
        """Call ``lookup`` until it succeeds or the policy gives up.

        Returns:
            Whatever ``lookup`` returned on success

        Raises:
            RetryExhausted: When timeout failures reach ``max_attempts``
            Exception: Any non-retryable failure from ``lookup``, unchanged
        """
        while True:
            self.state = ResolveState.RESOLVING
            try:
                result = await lookup()
            except RateLimitSignal as signal:
                self._enter(ResolveState.WAITING_RATE_LIMIT, signal)
                await self._sleep(self.rate_limit_delay(signal))
            except TimeoutFailure as failure:
                self.attempts += 1
                if self.attempts >= self.max_attempts:
                    exhausted = RetryExhausted(self.attempts)
                    self._enter(ResolveState.FAILED, exhausted)
                    raise exhausted from failure
                self._enter(ResolveState.WAITING_TIMEOUT, failure)
                await self._sleep(self.timeout_delay)
            except Exception as error:
                self._enter(ResolveState.FAILED, error)
                raise
            else:
                self.state = ResolveState.RESOLVED
                return result

    def _enter(self, state: ResolveState, error: BaseException) -> None:
        self.state = state
        if self._on_transition:
            self._on_transition(self, state, error)
