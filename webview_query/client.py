"""
Telethon client adapter.

The session processor only needs four calls from the RPC client. This module
provides them on top of Telethon and translates Telethon's failures into the
package's error taxonomy at the boundary.

A client built from a session file connects on first use, so a session that
cannot be opened fails inside the processor like any other session error.
"""

from pathlib import Path
from typing import Any, Callable, Optional, Union

from telethon import TelegramClient, functions

from .errors import ConfigurationError, translate_error


class TelethonWebAppClient:
    """Web app view operations over a Telethon client.

    Example:
        client = TelethonWebAppClient.from_session_file("sessions/alice.session", api_id, api_hash)
        peer = await client.resolve_peer("some_bot")
        url = await client.request_web_view(peer, peer, "https://app.example/", "android")
        await client.disconnect()
    """

    def __init__(self, client: TelegramClient, connected: bool = False):
        self._client = client
        self._connected = connected

    @classmethod
    def from_session_file(
        cls,
        session: Union[str, Path],
        api_id: int,
        api_hash: str,
        client_factory: Optional[Callable[..., TelegramClient]] = None,
    ) -> "TelethonWebAppClient":
        """Build a client for an existing ``.session`` file without connecting.

        Args:
            session: Path to a session file (extension optional)
            api_id: Telegram API id
            api_hash: Telegram API hash
            client_factory: Replacement for ``TelegramClient``
        """
        factory = client_factory or TelegramClient
        session_path = Path(session)
        if session_path.suffix == ".session":
            session_path = session_path.with_suffix("")
        return cls(factory(str(session_path), api_id, api_hash))

    @property
    def raw(self) -> TelegramClient:
        """The wrapped Telethon client."""
        return self._client

    @property
    def is_connected(self) -> bool:
        return self._connected

    async def connect(self) -> None:
        """Connect and check the session is authorized.

        Raises:
            ConfigurationError: If the session is not authorized
        """
        if self._connected:
            return
        try:
            await self._client.connect()
            self._connected = True
            authorized = await self._client.is_user_authorized()
        except Exception as e:
            raise translate_error(e) from e
        if not authorized:
            raise ConfigurationError("Session is not authorized; log in with Telethon first")

    async def get_me(self) -> Any:
        await self.connect()
        try:
            return await self._client.get_me()
        except Exception as e:
            raise translate_error(e) from e

    async def resolve_peer(self, bot: str) -> Any:
        """Look up the bot entity; failures arrive already translated."""
        await self.connect()
        try:
            return await self._client.get_input_entity(bot)
        except Exception as e:
            raise translate_error(e) from e

    async def request_web_view(
        self,
        peer: Any,
        bot: Any,
        url: str,
        platform: str,
        from_bot_menu: bool = True,
    ) -> str:
        """Open a web app view and return the URL carrying the auth payload."""
        await self.connect()
        try:
            result = await self._client(
                functions.messages.RequestWebViewRequest(
                    peer=peer,
                    bot=bot,
                    platform=platform,
                    from_bot_menu=from_bot_menu,
                    url=url,
                )
            )
        except Exception as e:
            raise translate_error(e) from e
        return result.url

    async def disconnect(self) -> None:
        if not self._connected:
            return
        self._connected = False
        await self._client.disconnect()
