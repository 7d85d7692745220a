"""
LLM oracle client and tolerant JSON extraction for its replies.
"""
from __future__ import annotations

import json
import logging
from typing import Any, Dict, Optional, Protocol

import requests

from greenwire.errors import OracleError
from greenwire.http_client import HttpClient
from greenwire.security import redact_secrets
from greenwire.settings import DEFAULT_ORACLE_ENDPOINT, DEFAULT_ORACLE_MODEL

logger = logging.getLogger(__name__)


class Oracle(Protocol):
    def complete(self, prompt: str, *, json_mode: bool = True) -> str:
        ...


class OpenRouterOracle:
    """
    Chat-completions client (OpenRouter / OpenAI compatible). Sends one user
    message with greedy decoding and returns the reply text.
    """

    def __init__(
        self,
        api_key: str,
        model: str = DEFAULT_ORACLE_MODEL,
        endpoint: str = DEFAULT_ORACLE_ENDPOINT,
        timeout: float = 60.0,
        http: Optional[HttpClient] = None,
    ) -> None:
        self.api_key = api_key
        self.model = model
        self.endpoint = endpoint
        self.timeout = timeout
        self.http = http or HttpClient(timeout=timeout, max_retries=0)

    def complete(self, prompt: str, *, json_mode: bool = True) -> str:
        body: Dict[str, Any] = {
            "model": self.model,
            "messages": [{"role": "user", "content": prompt}],
            "temperature": 0,
        }
        if json_mode:
            body["response_format"] = {"type": "json_object"}
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }
        try:
            response = self.http.post_json(self.endpoint, body, headers=headers, timeout=self.timeout)
        except requests.RequestException as exc:
            raise OracleError(f"Oracle request failed: {redact_secrets(str(exc))}") from exc
        if response.status_code >= 400:
            raise OracleError(f"Oracle returned HTTP {response.status_code}: {redact_secrets(response.text[:200])}")
        try:
            data = response.json()
        except ValueError as exc:
            raise OracleError("Oracle returned a non-JSON envelope") from exc
        try:
            content = data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError):
            logger.warning("Oracle reply had no message content")
            return ""
        return content or ""


def extract_json(text: Optional[str]) -> Optional[Any]:
    """
    Parse the first balanced `{...}` span in free text. Returns None when there is
    no such span or it does not parse; never raises.
    """
    if not text:
        return None
    start = text.find("{")
    if start < 0:
        return None

    depth = 0
    in_string = False
    escaped = False
    for pos in range(start, len(text)):
        char = text[pos]
        if in_string:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_string = False
            continue
        if char == '"':
            in_string = True
        elif char == "{":
            depth += 1
        elif char == "}":
            depth -= 1
            if depth == 0:
                try:
                    return json.loads(text[start : pos + 1])
                except ValueError:
                    return None
    return None
