"""LLM configuration loaded from the environment or a config file."""

from __future__ import annotations

import json
import logging
import os
import plistlib
from dataclasses import dataclass
from pathlib import Path
from urllib.parse import urlparse

from daybook.exceptions import LLMError, LLMErrorKind

logger = logging.getLogger(__name__)

API_KEY_PLACEHOLDER = "YOUR_API_KEY_HERE"

DEFAULT_BASE_URL = os.environ.get("XAI_BASE_URL", "https://api.x.ai/v1")
DEFAULT_MODEL = os.environ.get("XAI_MODEL", "grok-3-mini")
DEFAULT_PROVIDER = os.environ.get("DAYBOOK_PROVIDER", "openai")

PROVIDERS = ("openai", "anthropic")


@dataclass
class LLMConfig:
    """Connection settings for the chat-completions API.

    ``provider`` selects the transport: ``"openai"`` for any
    OpenAI-compatible ``/chat/completions`` endpoint, ``"anthropic"`` for the
    Anthropic Messages API.
    """

    api_key: str = ""
    base_url: str = DEFAULT_BASE_URL
    model: str = DEFAULT_MODEL
    provider: str = DEFAULT_PROVIDER
    max_tokens: int = 1000
    temperature: float = 0.7
    request_timeout: float = 30.0
    resource_timeout: float = 60.0

    @classmethod
    def from_env(cls) -> LLMConfig:
        """Build a config from ``XAI_API_KEY``, ``XAI_BASE_URL``, ``XAI_MODEL`` and ``DAYBOOK_PROVIDER``."""
        return cls(
            api_key=os.environ.get("XAI_API_KEY", ""),
            base_url=os.environ.get("XAI_BASE_URL", DEFAULT_BASE_URL),
            model=os.environ.get("XAI_MODEL", DEFAULT_MODEL),
            provider=os.environ.get("DAYBOOK_PROVIDER", DEFAULT_PROVIDER),
        )

    @classmethod
    def from_file(cls, path: str | Path) -> LLMConfig:
        """Load the same keys from a ``.json`` or ``.plist`` file."""
        path = Path(path)
        if not path.exists():
            raise LLMError(LLMErrorKind.INVALID_CONFIGURATION, detail=f"Config file not found: {path}")
        try:
            if path.suffix == ".plist":
                with path.open("rb") as f:
                    data = plistlib.load(f)
            else:
                data = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, ValueError, plistlib.InvalidFileException) as e:
            raise LLMError(LLMErrorKind.INVALID_CONFIGURATION, detail=str(e)) from e
        if not isinstance(data, dict):
            raise LLMError(LLMErrorKind.INVALID_CONFIGURATION, detail="Config file must hold a mapping")

        return cls(
            api_key=data.get("XAI_API_KEY", "") or "",
            base_url=data.get("XAI_BASE_URL", "") or "",
            model=data.get("XAI_MODEL", "") or "",
            provider=data.get("DAYBOOK_PROVIDER", DEFAULT_PROVIDER),
        )

    @property
    def completions_url(self) -> str:
        return f"{self.base_url.rstrip('/')}/chat/completions"

    def validate(self) -> None:
        """Raise the matching configuration ``LLMError`` if anything is missing."""
        if not self.api_key:
            raise LLMError(LLMErrorKind.MISSING_API_KEY)
        if self.api_key == API_KEY_PLACEHOLDER:
            raise LLMError(LLMErrorKind.INVALID_API_KEY)
        if self.provider not in PROVIDERS:
            raise LLMError(
                LLMErrorKind.INVALID_CONFIGURATION,
                detail=f"Unknown provider: {self.provider}",
            )
        if not self.model:
            raise LLMError(LLMErrorKind.INVALID_CONFIGURATION, detail="Model is not set")
        # The Anthropic SDK brings its own endpoint.
        if self.provider == "anthropic":
            return
        if not self.base_url:
            raise LLMError(LLMErrorKind.MISSING_BASE_URL)
        parsed = urlparse(self.base_url)
        if parsed.scheme not in ("http", "https") or not parsed.hostname:
            raise LLMError(
                LLMErrorKind.INVALID_CONFIGURATION,
                detail=f"Invalid base URL: {self.base_url}",
            )

    @property
    def is_valid(self) -> bool:
        try:
            self.validate()
        except LLMError as e:
            logger.debug(f"Configuration invalid: {e.debug_message}")
            return False
        return True
