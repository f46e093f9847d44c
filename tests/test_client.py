"""Tests for sonar_ingest/client.py"""

import pytest
import requests

from sonar_ingest.client import (
    NetworkError,
    NotFoundError,
    StylesheetClient,
    StylesheetClientError,
)

URL = "https://xsl.example.com/ctest-to-junit.xsl"


@pytest.fixture
def client() -> StylesheetClient:
    return StylesheetClient(timeout=5)


# ---------------------------------------------------------------------------
# fetch(): happy path
# ---------------------------------------------------------------------------

def test_fetch_returns_raw_body(client, requests_mock):
    requests_mock.get(URL, content=b"<xsl:stylesheet/>")
    assert client.fetch(URL) == b"<xsl:stylesheet/>"


# ---------------------------------------------------------------------------
# fetch(): HTTP error codes
# ---------------------------------------------------------------------------

def test_fetch_404_raises_not_found_error(client, requests_mock):
    requests_mock.get(URL, status_code=404)
    with pytest.raises(NotFoundError, match="not found"):
        client.fetch(URL)


def test_fetch_500_raises_client_error(client, requests_mock):
    requests_mock.get(URL, status_code=500, text="Internal Server Error")
    with pytest.raises(StylesheetClientError, match="500"):
        client.fetch(URL)


# ---------------------------------------------------------------------------
# fetch(): network errors
# ---------------------------------------------------------------------------

def test_fetch_timeout_raises_network_error(client, requests_mock):
    requests_mock.get(URL, exc=requests.exceptions.Timeout)
    with pytest.raises(NetworkError, match="timed out"):
        client.fetch(URL)


def test_fetch_connection_error_raises_network_error(client, requests_mock):
    requests_mock.get(URL, exc=requests.exceptions.ConnectionError)
    with pytest.raises(NetworkError, match="Unable to reach"):
        client.fetch(URL)
