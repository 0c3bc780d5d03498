from __future__ import annotations

import logging
from typing import Dict, Optional

import requests

logger = logging.getLogger(__name__)

WIKIPEDIA_API = "https://en.wikipedia.org/w/api.php"


class WikiImageResolver:
    """Finds a representative image for a place via Wikipedia, with in-memory caching.

    Any failure yields None; a missing picture is never an error.
    """

    def __init__(self, thumbnail_size: int = 600, timeout: int = 8, user_agent: str = "tripledger/1.0") -> None:
        self.thumbnail_size = thumbnail_size
        self.timeout = timeout
        self._session = requests.Session()
        self._session.headers.update({"User-Agent": user_agent})
        self._cache: Dict[str, Optional[str]] = {}

    def lookup(self, term: str) -> Optional[str]:
        key = _normalize(term)
        if not key:
            return None
        if key in self._cache:
            return self._cache[key]

        try:
            resp = self._session.get(
                WIKIPEDIA_API,
                params={"action": "query", "list": "search", "srsearch": term, "format": "json"},
                timeout=self.timeout,
            )
            resp.raise_for_status()
            results = (resp.json().get("query") or {}).get("search") or []
            if not results:
                self._cache[key] = None
                return None
            title = results[0]["title"]

            resp = self._session.get(
                WIKIPEDIA_API,
                params={
                    "action": "query",
                    "titles": title,
                    "prop": "pageimages",
                    "format": "json",
                    "pithumbsize": self.thumbnail_size,
                },
                timeout=self.timeout,
            )
            resp.raise_for_status()
            pages = (resp.json().get("query") or {}).get("pages") or {}
            url = None
            for page in pages.values():
                url = (page.get("thumbnail") or {}).get("source")
                break
            self._cache[key] = url
            return url
        except Exception as exc:  # noqa: BLE001
            logger.warning("Image lookup for %r failed: %s", term, exc)
            return None


def _normalize(value: Optional[str]) -> str:
    return " ".join((value or "").strip().lower().split())
