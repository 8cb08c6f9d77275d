"""
Session Processor - fetch one web app query for one session.

Flow for a single session:
1. Check the bot and URL are configured
2. Fetch the account identity
3. Resolve the bot peer (retrying flood waits and timeouts)
4. Request the web app view and extract the auth payload from its URL
5. Append the payload to ``query_<bot>.txt``

The client is disconnected exactly once on every path out of ``process``.
"""

import json
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, AsyncIterator, Optional, Union

from ..errors import (
    ConfigurationError,
    PeerResolutionError,
    RequestFailure,
    RetryExhausted,
)
from ..logger import StructuredLogger, get_logger, highlight
from ..query import ExtractedQuery, extract_query, save_query
from .descriptor import SessionDescriptor
from .retry import PeerResolutionPolicy, ResolveState, SleepFunc


COMPONENT = "SessionProcessor"


class SessionProcessor:
    """Single-use processor for one SessionDescriptor.

    Example:
        processor = SessionProcessor(descriptor)
        query = await processor.process()
    """

    def __init__(
        self,
        descriptor: SessionDescriptor,
        output_dir: Union[str, Path] = ".",
        platform: str = "android",
        max_attempts: int = 5,
        timeout_delay: float = 5.0,
        rate_limit_padding: float = 3.0,
        sleep: Optional[SleepFunc] = None,
        logger: Optional[StructuredLogger] = None,
    ):
        """Initialize the processor.

        Args:
            descriptor: Session to process
            output_dir: Directory for ``query_<bot>.txt``
            platform: Platform tag sent with the web view request
            max_attempts: Timeout failures tolerated while resolving the bot
            timeout_delay: Seconds slept after each timeout failure
            rate_limit_padding: Seconds added to each flood wait
            sleep: Awaitable sleep, injectable for tests
            logger: Logger, the global one by default
        """
        self._descriptor = descriptor
        self._output_dir = output_dir
        self._platform = platform
        self._max_attempts = max_attempts
        self._timeout_delay = timeout_delay
        self._rate_limit_padding = rate_limit_padding
        self._sleep = sleep
        self._logger = logger or get_logger()
        self._peer: Any = None
        self._user: Any = None
        self._used = False

    @property
    def descriptor(self) -> SessionDescriptor:
        return self._descriptor

    @property
    def peer(self) -> Any:
        """Resolved bot peer, or None before resolution."""
        return self._peer

    @property
    def user(self) -> Any:
        """Account identity fetched at the start of ``process``."""
        return self._user

    def _log_data(self, **extra: Any) -> dict:
        data = {"session": self._descriptor.label}
        data.update(extra)
        return data

    async def resolve_peer(self) -> Any:
        """Resolve the bot peer once, retrying flood waits and timeouts.

        Returns:
            The resolved peer (cached after the first success)

        Raises:
            RetryExhausted: When timeout failures reach the attempt bound
            PeerResolutionError: When the lookup returns an empty peer
            Exception: Any other lookup failure, unchanged
        """
        if self._peer is not None:
            return self._peer

        self._logger.info(COMPONENT, "resolving_peer", self._log_data(bot=self._descriptor.bot))

        policy = PeerResolutionPolicy(
            max_attempts=self._max_attempts,
            timeout_delay=self._timeout_delay,
            rate_limit_padding=self._rate_limit_padding,
            sleep=self._sleep,
            on_transition=self._on_resolve_transition,
        )

        async def lookup() -> Any:
            self._logger.debug(COMPONENT, "resolve_attempt", self._log_data(
                attempt=policy.attempts + 1,
                state=policy.state.value,
            ))
            return await self._descriptor.client.resolve_peer(self._descriptor.bot)

        peer = await policy.run(lookup)
        if not peer:
            raise PeerResolutionError(f"Lookup of {self._descriptor.bot} returned no peer")

        self._peer = peer
        self._logger.info(COMPONENT, "peer_resolved", self._log_data(attempts=policy.attempts))
        return peer

    def _on_resolve_transition(
        self,
        policy: PeerResolutionPolicy,
        state: ResolveState,
        error: BaseException,
    ) -> None:
        if state is ResolveState.WAITING_RATE_LIMIT:
            self._logger.warn(COMPONENT, "flood_wait", self._log_data(
                seconds=error.seconds,
                error=str(error),
            ))
            self._logger.info(COMPONENT, "sleeping", self._log_data(
                seconds=policy.rate_limit_delay(error),
            ))
        elif state is ResolveState.WAITING_TIMEOUT:
            highlight("TIMEOUT")
            self._logger.warn(COMPONENT, "timeout", self._log_data(
                attempt=policy.attempts,
                max_attempts=policy.max_attempts,
                retry_in=policy.timeout_delay,
            ))
        elif state is ResolveState.FAILED and isinstance(error, RetryExhausted):
            highlight("TIMEOUT")
            self._logger.error(COMPONENT, "resolve_gave_up", self._log_data(
                attempts=policy.attempts,
            ))

    async def process(self) -> ExtractedQuery:
        """Fetch, persist and return the web app query for this session.

        Raises:
            ConfigurationError: If bot or URL is empty
            RetryExhausted: If peer resolution timed out too often
            RequestFailure: If the web view request or extraction failed
            RuntimeError: If the processor was already used
        """
        if self._used:
            raise RuntimeError("SessionProcessor instances are single-use")
        self._used = True

        descriptor = self._descriptor
        async with self._client_scope():
            try:
                if not descriptor.bot or not descriptor.url:
                    raise ConfigurationError("You need to set Bot Username and Bot Web Apps URL")

                self._logger.info(COMPONENT, "processing", self._log_data())
                self._user = await descriptor.client.get_me()
                self._logger.debug(COMPONENT, "identity_fetched", self._log_data(
                    user_id=getattr(self._user, "id", None),
                ))

                await self.resolve_peer()
                query = await self._request_query()

                path = save_query(descriptor.bot, query, self._output_dir)
                self._logger.info(COMPONENT, "query_saved", self._log_data(file=str(path)))
                return query
            except Exception as e:
                self._logger.error(COMPONENT, "process_failed", self._log_data(
                    error=str(e),
                    error_type=type(e).__name__,
                ))
                raise

    async def _request_query(self) -> ExtractedQuery:
        descriptor = self._descriptor
        with self._logger.span(COMPONENT, "web_view", self._log_data()) as span:
            try:
                auth_url = await descriptor.client.request_web_view(
                    self._peer,
                    self._peer,
                    descriptor.url,
                    self._platform,
                )
                query = extract_query(auth_url, descriptor.use_default_query_type)
                mode = "raw" if isinstance(query, str) else "decoded"
                span.set_data({"mode": mode})
                self._logger.debug(COMPONENT, "payload_extracted", self._log_data(
                    mode=mode,
                    payload_length=len(json.dumps(query)),
                ))
                return query
            except RequestFailure:
                raise
            except Exception as e:
                raise RequestFailure(f"Web view request failed: {e}") from e

    @asynccontextmanager
    async def _client_scope(self) -> AsyncIterator[Any]:
        """Hold the client for the body; disconnect on every exit path."""
        client = self._descriptor.client
        try:
            yield client
        finally:
            try:
                await client.disconnect()
                self._logger.info(COMPONENT, "client_disconnected", self._log_data())
            except Exception as e:
                self._logger.error(COMPONENT, "disconnect_failed", self._log_data(error=str(e)))
