"""
HTTP access to package registries with retry on throttling.
"""

from __future__ import annotations

import json
import logging
import random
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

import requests

from .config import IndexSettings
from .errors import MalformedResponseError, RegistryRequestError, RegistryThrottledError


logger = logging.getLogger(__name__)

HTTP_TOO_MANY_REQUESTS = 429


@dataclass(frozen=True)
class RegistryResponse:
    """Status and body of one registry request."""

    uri: str
    status_code: int
    text: str

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300

    def json(self) -> Any:
        try:
            return json.loads(self.text)
        except (TypeError, ValueError) as e:
            raise MalformedResponseError(f"Response is not valid JSON: {e}", self.uri) from e


def get_default_headers(settings: IndexSettings) -> Dict[str, str]:
    return {"User-Agent": settings.user_agent}


class RegistryClient:
    """Issue GET requests against registries, backing off while throttled."""

    def __init__(
        self,
        settings: Optional[IndexSettings] = None,
        session: Optional[requests.Session] = None,
        sleep: Callable[[float], None] = time.sleep,
        uniform: Callable[[float, float], float] = random.uniform,
    ) -> None:
        self.settings = settings or IndexSettings()
        self.session = session or requests.Session()
        self.session.headers.update(get_default_headers(self.settings))
        self._sleep = sleep
        self._uniform = uniform

    def backoff_delay_ms(self, attempt: int) -> float:
        """Return a jittered delay in [delay/2, delay) for the given attempt."""
        delay = self.settings.base_delay_ms * 2 ** (attempt - 1)
        return self._uniform(delay / 2, delay)

    def query(self, uri: str, headers: Optional[Dict[str, str]] = None) -> RegistryResponse:
        """GET ``uri``; any status other than 429 is returned to the caller as-is."""
        attempt = 1
        response = self._get(uri, headers)
        while response.status_code == HTTP_TOO_MANY_REQUESTS:
            max_attempts = self.settings.max_attempts
            if max_attempts is not None and attempt >= max_attempts:
                raise RegistryThrottledError(uri, attempt)

            delay_ms = self.backoff_delay_ms(attempt)
            logger.warning(
                "Attempt %s to %s returned HTTP 429. Retrying in %.0f ms...",
                attempt, uri, delay_ms,
            )
            self._sleep(delay_ms / 1000)
            response = self._get(uri, headers)
            attempt += 1
        return response

    def _get(self, uri: str, headers: Optional[Dict[str, str]]) -> RegistryResponse:
        logger.debug("GET %s", uri)
        try:
            with self.session.get(
                uri, headers=headers, timeout=self.settings.request_timeout
            ) as response:
                return RegistryResponse(uri=uri, status_code=response.status_code, text=response.text)
        except requests.exceptions.RequestException as e:
            raise RegistryRequestError(f"Request to {uri} failed: {e}") from e

    def close(self) -> None:
        self.session.close()
