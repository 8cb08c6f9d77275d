"""
Session manifest loading from YAML files.

Example manifest:

    defaults:
      bot: some_bot
      url: https://app.example/
      use_default_query_type: true
    sessions:
      - session: alice.session
      - session: bob
        label: bob-main
        use_default_query_type: false
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Union

import yaml

from ..config.loader import WebViewQueryConfig, parse_bool
from ..errors import ConfigurationError
from .descriptor import SessionDescriptor


@dataclass
class SessionEntry:
    """One session as declared in a manifest, before a client exists."""
    session: Path
    label: str
    bot: str = ""
    url: str = ""
    use_default_query_type: bool = True

    @classmethod
    def from_dict(
        cls,
        data: Dict[str, Any],
        defaults: Dict[str, Any],
        sessions_dir: Path,
    ) -> "SessionEntry":
        """Create an entry from a manifest item, falling back to ``defaults``."""
        if not isinstance(data, dict) or not data.get("session"):
            raise ConfigurationError(f"Session entry needs a 'session' field: {data!r}")

        session = Path(str(data["session"]))
        if not session.is_absolute():
            session = sessions_dir / session
        if session.suffix != ".session":
            session = session.with_name(session.name + ".session")

        def pick(key: str, fallback: Any) -> Any:
            value = data.get(key)
            if value is None:
                value = defaults.get(key)
            return fallback if value is None else value

        return cls(
            session=session,
            label=str(data.get("label") or session.stem),
            bot=str(pick("bot", "")),
            url=str(pick("url", "")),
            use_default_query_type=parse_bool(pick("use_default_query_type", True)),
        )

    def to_descriptor(self, client: Any) -> SessionDescriptor:
        return SessionDescriptor(
            client=client,
            label=self.label,
            bot=self.bot,
            url=self.url,
            use_default_query_type=self.use_default_query_type,
        )


class SessionManifestLoader:
    """Load session entries from a YAML manifest or a sessions directory.

    Example:
        loader = SessionManifestLoader(config)
        entries = loader.load("sessions.yaml")
    """

    def __init__(self, config: WebViewQueryConfig):
        self.config = config
        self.sessions_dir = Path(config.sessions_dir)

    def _config_defaults(self) -> Dict[str, Any]:
        return {
            "bot": self.config.bot,
            "url": self.config.url,
            "use_default_query_type": self.config.use_default_query_type,
        }

    def load(self, manifest: Optional[Union[str, Path]] = None) -> List[SessionEntry]:
        """Load entries from ``manifest``, or scan the sessions directory.

        Raises:
            ConfigurationError: If the manifest is missing or malformed
        """
        if manifest is None:
            return self.scan_directory()

        path = Path(manifest)
        if not path.exists():
            raise ConfigurationError(f"Session manifest not found: {path}")
        return self.from_yaml(path.read_text(encoding="utf-8"), source=path)

    def from_yaml(self, yaml_content: str, source: Optional[Path] = None) -> List[SessionEntry]:
        try:
            data = yaml.safe_load(yaml_content) or {}
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML in {source or 'manifest'}: {e}") from e

        if not isinstance(data, dict):
            raise ConfigurationError(f"{source or 'manifest'} must be a mapping")

        defaults = self._config_defaults()
        defaults.update({k: v for k, v in (data.get("defaults") or {}).items() if v is not None})

        items = data.get("sessions") or []
        if not isinstance(items, list):
            raise ConfigurationError("'sessions' must be a list")

        return [SessionEntry.from_dict(item, defaults, self.sessions_dir) for item in items]

    def scan_directory(self) -> List[SessionEntry]:
        """One entry per ``*.session`` file, using the configured bot and URL."""
        if not self.sessions_dir.is_dir():
            return []

        defaults = self._config_defaults()
        return [
            SessionEntry.from_dict({"session": path.name}, defaults, self.sessions_dir)
            for path in sorted(self.sessions_dir.glob("*.session"))
        ]


def build_descriptors(
    entries: List[SessionEntry],
    client_factory: Callable[[SessionEntry], Any],
) -> List[SessionDescriptor]:
    """Attach a client to every entry."""
    return [entry.to_descriptor(client_factory(entry)) for entry in entries]
