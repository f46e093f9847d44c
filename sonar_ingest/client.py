"""HTTP client for remote stylesheets.

Usage:
    client = StylesheetClient(timeout=30)
    xsl    = client.fetch("https://example.com/xsl/ctest-to-junit.xsl")
"""

import requests


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------

class StylesheetClientError(Exception):
    """Base exception for all client errors."""


class NotFoundError(StylesheetClientError):
    """Raised on HTTP 404: the stylesheet does not exist."""


class NetworkError(StylesheetClientError):
    """Raised on connection timeout or unreachable server."""


# ---------------------------------------------------------------------------
# Client
# ---------------------------------------------------------------------------

class StylesheetClient:
    """Thin wrapper around ``requests`` for downloading stylesheets."""

    def __init__(self, timeout: int = 30) -> None:
        self._timeout = timeout
        self._session = requests.Session()

    def fetch(self, url: str) -> bytes:
        """Download *url* and return the raw body.

        Raises:
            NotFoundError:         HTTP 404
            StylesheetClientError: Any other non-2xx response
            NetworkError:          Timeout or connection failure
        """
        try:
            with self._session.get(url, timeout=self._timeout) as response:
                if response.status_code == 404:
                    raise NotFoundError(f"Stylesheet not found: {url}")
                if not response.ok:
                    raise StylesheetClientError(
                        f"Unexpected response {response.status_code} from {url}: {response.text[:200]}"
                    )
                return response.content
        except requests.exceptions.Timeout as exc:
            raise NetworkError(
                f"Request timed out after {self._timeout}s while fetching '{url}'"
            ) from exc
        except requests.exceptions.ConnectionError as exc:
            raise NetworkError(f"Unable to reach '{url}'") from exc

    def close(self) -> None:
        self._session.close()
