"""
Session descriptor - the immutable input of one processing run.
"""

from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class SessionDescriptor:
    """Everything needed to fetch one web app query.

    Attributes:
        client: Connected, authorized client handle (see ``WebAppClient``)
        label: Human-readable session name used to tag log records
        bot: Bot username or identifier to open the web view for
        url: Fully qualified web app URL
        use_default_query_type: Return the raw init-data string when True,
            a decoded key/value mapping when False
    """
    client: Any
    label: str
    bot: str
    url: str
    use_default_query_type: bool = True
