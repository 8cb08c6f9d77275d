"""
Query extraction and persistence.

A web view URL carries the signed init data in its fragment:

    https://app.example/#tgWebAppData=query_id%3DAA...%26user%3D%257B...%26hash%3Dab12&tgWebAppVersion=7.0

``extract_query`` pulls ``tgWebAppData`` out and returns it either as the raw
init-data string or as a decoded mapping. ``save_query`` appends it to
``query_<bot>.txt``.
"""

import json
import os
from pathlib import Path
from typing import Dict, Optional, Union
from urllib.parse import parse_qsl, unquote, urlsplit

from .errors import QueryExtractionError


WEB_APP_DATA_PARAM = "tgWebAppData"

ExtractedQuery = Union[str, Dict[str, str]]


def _find_web_app_data(url: str) -> Optional[str]:
    parts = urlsplit(url)
    for source in (parts.fragment, parts.query):
        if not source:
            continue
        # Keep percent-escapes so the init data is only decoded once
        for item in source.split("&"):
            key, sep, value = item.partition("=")
            if sep and key == WEB_APP_DATA_PARAM:
                return value
    return None


def extract_query(url: str, use_default_query_type: bool = True) -> ExtractedQuery:
    """Extract the auth payload from a web view URL.

    Args:
        url: URL returned by the web view request
        use_default_query_type: Return the init-data string when True,
            otherwise a mapping of its decoded key/value pairs

    Raises:
        QueryExtractionError: If the URL carries no non-empty tgWebAppData
    """
    if not url:
        raise QueryExtractionError("Web view returned an empty URL")

    raw = _find_web_app_data(url)
    if not raw:
        raise QueryExtractionError(f"No {WEB_APP_DATA_PARAM} found in the web view URL")

    init_data = unquote(raw)
    if use_default_query_type:
        return init_data

    pairs = parse_qsl(init_data, keep_blank_values=True)
    if not pairs:
        raise QueryExtractionError(f"{WEB_APP_DATA_PARAM} holds no key/value pairs")
    return dict(pairs)


def query_file_path(bot: str, output_dir: Union[str, Path] = ".") -> Path:
    """Path of the append-only file collecting queries for ``bot``."""
    return Path(output_dir) / f"query_{bot}.txt"


def save_query(bot: str, query: ExtractedQuery, output_dir: Union[str, Path] = ".") -> Path:
    """Append an indented JSON rendering of ``query`` plus a newline.

    The whole block is serialized before the file is opened and written with
    a single call, so a failure never leaves a partial fragment behind.

    Returns:
        Path of the file that was appended to
    """
    block = json.dumps(query, indent=2, ensure_ascii=False) + "\n"

    path = query_file_path(bot, output_dir)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "a", encoding="utf-8") as f:
        f.write(block)
        f.flush()
        os.fsync(f.fileno())
    return path
