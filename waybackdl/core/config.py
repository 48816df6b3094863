"""
Run configuration and the JSON settings file that can pre-fill it.
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, fields
from typing import Any, Dict

import requests

from waybackdl import __version__


DEFAULT_USER_AGENT = f'waybackdl/{__version__} (Wayback Machine Site Downloader)'

logger = logging.getLogger(__name__)


@dataclass
class RunConfig:
    threads: int = 1
    recursive: bool = False
    max_depth: int = 1  # levels of discovered links followed from index pages
    all_timestamps: bool = False  # one download per capture timestamp
    timeout: float = 30.0
    rate_limit: float = 0.0  # requests/sec shared by all workers, 0 = unthrottled
    user_agent: str = DEFAULT_USER_AGENT

    def __post_init__(self):
        self.threads = max(1, int(self.threads))
        self.max_depth = max(0, int(self.max_depth))

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RunConfig":
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            logger.warning(f"Ignoring unknown settings: {', '.join(unknown)}")
        return cls(**{k: v for k, v in data.items() if k in known})


def load_settings(path: str) -> Dict[str, Any]:
    """
    Load a JSON settings file.

    Args:
        path: Path to a JSON object of option names to values

    Returns:
        The settings dictionary; empty when the file does not exist

    Raises:
        ValueError: If the file is not a JSON object
    """
    if not os.path.exists(path):
        return {}
    with open(path, 'r', encoding='utf-8') as f:
        data = json.load(f)
    if not isinstance(data, dict):
        raise ValueError(f"Settings file {path} must contain a JSON object")
    return data


def create_session(user_agent: str = DEFAULT_USER_AGENT) -> requests.Session:
    """Create the HTTP session shared by the index client and the fetcher."""
    session = requests.Session()
    session.headers.update({'User-Agent': user_agent})
    return session
