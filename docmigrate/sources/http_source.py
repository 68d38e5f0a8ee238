import logging
from typing import Any, Iterator, List, Optional

import requests

from .base import SampleSource

logger = logging.getLogger(__name__)


class HttpSampleSource(SampleSource):
    """
    Pulls samples from an HTTP export endpoint:

        GET {base_url}/containers/{container}/documents?limit={max_count}

    The response is either a JSON array or an object with a
    "documents" array.
    """

    def __init__(self, base_url: str, timeout: float = 10.0, session: Optional[requests.Session] = None):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()

    def fetch_sample(self, container: str, max_count: int) -> Iterator[Any]:
        url = f"{self.base_url}/containers/{container}/documents"
        try:
            response = self.session.get(url, params={"limit": max_count}, timeout=self.timeout)
            response.raise_for_status()
            payload = response.json()
        except requests.exceptions.RequestException as e:
            logger.warning("Failed to fetch sample for '%s' from %s: %s", container, url, e)
            raise

        documents = payload.get("documents", []) if isinstance(payload, dict) else payload
        if not isinstance(documents, list):
            raise ValueError(f"Unexpected sample payload for '{container}': {type(documents).__name__}")
        yield from documents[:max_count]

    def list_containers(self) -> List[str]:
        response = self.session.get(f"{self.base_url}/containers", timeout=self.timeout)
        response.raise_for_status()
        payload = response.json()
        return [str(name) for name in payload] if isinstance(payload, list) else []
