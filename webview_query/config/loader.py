"""
Configuration Loader - Load and merge configuration from multiple sources.

Configuration precedence (low → high):
1. ~/.webview_query/config.json (global defaults)
2. .webview_query/config.json (project config)
3. .env file in the project root (loaded into the environment)
4. Environment variables (WEBVIEW_QUERY_*, API_ID, API_HASH)
5. Runtime overrides
"""

import json
import os
from dataclasses import asdict, dataclass, fields
from pathlib import Path
from typing import Any, Dict, Optional

from dotenv import load_dotenv

from ..errors import ConfigurationError


@dataclass
class WebViewQueryConfig:
    """Parsed configuration.

    Attributes:
        api_id: Telegram API id used to open session files
        api_hash: Telegram API hash used to open session files
        sessions_dir: Directory holding Telethon ``.session`` files
        output_dir: Directory the ``query_<bot>.txt`` files are appended in
        bot: Default bot username for sessions that do not name one
        url: Default web app URL for sessions that do not name one
        use_default_query_type: Default extraction mode
        platform: Platform tag sent with the web view request
        max_timeout_attempts: Timeout failures tolerated while resolving a bot
        timeout_delay: Seconds slept after a timeout failure
        rate_limit_padding: Seconds added on top of a flood wait
        log_level: Logging level
        log_directory: Directory for log files
        log_sensitive_data: Log query payloads and URLs unredacted
    """
    api_id: Optional[int] = None
    api_hash: Optional[str] = None
    sessions_dir: str = "sessions"
    output_dir: str = "."
    bot: Optional[str] = None
    url: Optional[str] = None
    use_default_query_type: bool = True
    platform: str = "android"
    max_timeout_attempts: int = 5
    timeout_delay: float = 5.0
    rate_limit_padding: float = 3.0
    log_level: str = "INFO"
    log_directory: Optional[str] = None
    log_sensitive_data: bool = False

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return asdict(self)

    def require_credentials(self) -> None:
        """Raise ConfigurationError unless API credentials are present."""
        if not self.api_id or not self.api_hash:
            raise ConfigurationError(
                "API_ID and API_HASH must be set to open Telegram sessions"
            )


class ConfigLoader:
    """Load configuration from multiple sources with precedence.

    Example:
        loader = ConfigLoader(project_root="/path/to/project")
        config = loader.load(overrides={"bot": "some_bot"})
    """

    ENV_MAPPINGS = {
        "API_ID": "api_id",
        "API_HASH": "api_hash",
        "WEBVIEW_QUERY_API_ID": "api_id",
        "WEBVIEW_QUERY_API_HASH": "api_hash",
        "WEBVIEW_QUERY_SESSIONS_DIR": "sessions_dir",
        "WEBVIEW_QUERY_OUTPUT_DIR": "output_dir",
        "WEBVIEW_QUERY_BOT": "bot",
        "WEBVIEW_QUERY_URL": "url",
        "WEBVIEW_QUERY_USE_DEFAULT_QUERY_TYPE": "use_default_query_type",
        "WEBVIEW_QUERY_PLATFORM": "platform",
        "WEBVIEW_QUERY_MAX_TIMEOUT_ATTEMPTS": "max_timeout_attempts",
        "WEBVIEW_QUERY_TIMEOUT_DELAY": "timeout_delay",
        "WEBVIEW_QUERY_RATE_LIMIT_PADDING": "rate_limit_padding",
        "WEBVIEW_QUERY_LOG_LEVEL": "log_level",
        "WEBVIEW_QUERY_LOG_DIRECTORY": "log_directory",
        "WEBVIEW_QUERY_LOG_SENSITIVE": "log_sensitive_data",
    }

    def __init__(
        self,
        project_root: Optional[str] = None,
        home_dir: Optional[str] = None,
        load_env_file: bool = True,
    ):
        """Initialize the config loader.

        Args:
            project_root: Project root directory (default: current working dir)
            home_dir: Home directory (default: user's home)
            load_env_file: Read ``<project_root>/.env`` into the environment
        """
        self.project_root = Path(project_root) if project_root else Path.cwd()
        self.home_dir = Path(home_dir) if home_dir else Path.home()
        self.load_env_file = load_env_file

        self.global_config_path = self.home_dir / ".webview_query" / "config.json"
        self.project_config_path = self.project_root / ".webview_query" / "config.json"
        self.env_file_path = self.project_root / ".env"

    def load(self, overrides: Optional[Dict[str, Any]] = None) -> WebViewQueryConfig:
        """Load and merge configuration from all sources.

        Args:
            overrides: Runtime values; ``None`` entries are ignored

        Returns:
            Merged WebViewQueryConfig object

        Raises:
            ConfigurationError: If a config file or value cannot be parsed
        """
        config_dict: Dict[str, Any] = {}

        if self.global_config_path.exists():
            config_dict.update(self._load_json(self.global_config_path))

        if self.project_config_path.exists():
            config_dict.update(self._load_json(self.project_config_path))

        if self.load_env_file and self.env_file_path.exists():
            # Real environment wins over .env
            load_dotenv(self.env_file_path, override=False)

        config_dict = self._apply_env_vars(config_dict)

        if overrides:
            config_dict.update({k: v for k, v in overrides.items() if v is not None})

        return self._build(config_dict)

    def _load_json(self, path: Path) -> Dict[str, Any]:
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            raise ConfigurationError(f"Invalid JSON in {path}: {e}") from e

        if not isinstance(data, dict):
            raise ConfigurationError(f"{path} must contain a JSON object")
        return data

    def _apply_env_vars(self, config: Dict[str, Any]) -> Dict[str, Any]:
        """Apply environment variable overrides.

        Examples:
            API_ID -> config["api_id"]
            WEBVIEW_QUERY_BOT -> config["bot"]
        """
        for env_var, config_key in self.ENV_MAPPINGS.items():
            value = os.environ.get(env_var)
            if value is not None and value != "":
                config[config_key] = value
        return config

    def _build(self, config_dict: Dict[str, Any]) -> WebViewQueryConfig:
        """Coerce raw values to the dataclass field types."""
        known = {f.name: f for f in fields(WebViewQueryConfig)}
        defaults = WebViewQueryConfig()
        values: Dict[str, Any] = {}

        for name, value in config_dict.items():
            if name not in known:
                continue
            default = getattr(defaults, name)
            try:
                values[name] = _coerce(name, value, default)
            except (TypeError, ValueError) as e:
                raise ConfigurationError(f"Invalid value for {name}: {value!r}") from e

        return WebViewQueryConfig(**values)


def parse_bool(value: Any) -> bool:
    """Parse a bool that may arrive as a string from env vars, JSON or YAML."""
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in ("1", "true", "yes", "on")


def _coerce(name: str, value: Any, default: Any) -> Any:
    if value is None:
        return None
    if name == "api_id":
        return int(value)
    if isinstance(default, bool):
        return parse_bool(value)
    if isinstance(default, int):
        return int(value)
    if isinstance(default, float):
        return float(value)
    return str(value)


def load_config(
    project_root: Optional[str] = None,
    overrides: Optional[Dict[str, Any]] = None,
) -> WebViewQueryConfig:
    """Convenience function to load configuration.

    Args:
        project_root: Optional project root directory
        overrides: Optional runtime overrides

    Returns:
        Loaded WebViewQueryConfig
    """
    return ConfigLoader(project_root=project_root).load(overrides=overrides)
