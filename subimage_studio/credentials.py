"""
credentials.py — Where the studio gets its API key from.

The orchestrator only needs `current_key` and `is_ready`; how the key was
chosen (env var, .env file, a key picker in some UI) is not its concern.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Mapping, Optional, Protocol

from dotenv import load_dotenv

KEY_VARS = ("GEMINI_API_KEY", "API_KEY")


class CredentialProvider(Protocol):
    @property
    def current_key(self) -> str: ...

    @property
    def is_ready(self) -> bool: ...


@dataclass
class StaticCredentials:
    """A key handed over directly, e.g. by a key picker or a test."""

    key: str = ""

    @property
    def current_key(self) -> str:
        return self.key.strip()

    @property
    def is_ready(self) -> bool:
        return bool(self.current_key)


class EnvCredentials:
    """Reads GEMINI_API_KEY (or API_KEY) from the environment, loading .env first."""

    def __init__(self, environ: Optional[Mapping[str, str]] = None) -> None:
        if environ is None:
            load_dotenv()
            environ = os.environ
        self._environ = environ

    @property
    def current_key(self) -> str:
        for name in KEY_VARS:
            value = (self._environ.get(name) or "").strip()
            if value:
                return value
        return ""

    @property
    def is_ready(self) -> bool:
        return bool(self.current_key)
