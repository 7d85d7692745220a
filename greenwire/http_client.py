"""
HTTP helper with retries + polite headers reused by fetchers and the oracle client.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from greenwire.security import redact_secrets

logger = logging.getLogger(__name__)


class HttpClient:
    """
    Thin wrapper over requests.Session. Errors propagate to the caller, which owns
    the per-unit failure policy (one feed, one keyword group, one oracle call).
    """

    def __init__(self, timeout: float = 15, max_retries: int = 2, user_agent: str | None = None):
        self.timeout = timeout
        self.session = requests.Session()
        retry = Retry(
            total=max_retries,
            backoff_factor=0.6,
            status_forcelist=[500, 502, 503, 504],
            allowed_methods=["HEAD", "GET", "OPTIONS"],
            raise_on_status=False,
        )
        adapter = HTTPAdapter(max_retries=retry)
        self.session.mount("http://", adapter)
        self.session.mount("https://", adapter)
        self.session.headers.update({"User-Agent": user_agent or "greenwire/1.0"})

    def get(
        self,
        url: str,
        params: Optional[Dict[str, Any]] = None,
        timeout: Optional[float] = None,
    ) -> requests.Response:
        logger.debug("HTTP GET %s", redact_secrets(url))
        return self.session.get(url, params=params, timeout=timeout or self.timeout)

    def post_json(
        self,
        url: str,
        payload: Dict[str, Any],
        headers: Optional[Dict[str, str]] = None,
        timeout: Optional[float] = None,
    ) -> requests.Response:
        logger.debug("HTTP POST %s", redact_secrets(url))
        return self.session.post(url, json=payload, headers=headers, timeout=timeout or self.timeout)

    def close(self) -> None:
        self.session.close()
