"""Tests for ci_signal_report/client.py"""

import math
import time

import pytest
import requests

from ci_signal_report.client import (
    ApiClient,
    AuthenticationError,
    DecodeError,
    NotFoundError,
    TransportError,
)

BASE = "https://api.example.com"
ITEMS = f"{BASE}/repos/o/r/issues"


@pytest.fixture
def client() -> ApiClient:
    return ApiClient(BASE, token="ghp_test", retries=0, backoff=0)


def _mock_pages(m, url: str, pages: list[list]) -> list:
    """Register one response per page, followed by the terminating empty page."""
    return [
        m.get(f"{url}?page={number}", json=items)
        for number, items in enumerate(pages + [[]], start=1)
    ]


# ---------------------------------------------------------------------------
# get() — happy path
# ---------------------------------------------------------------------------

def test_get_returns_parsed_json(client, requests_mock):
    requests_mock.get(f"{BASE}/projects/1/columns", json=[{"id": 1, "name": "New"}])
    assert client.get("/projects/1/columns") == [{"id": 1, "name": "New"}]


def test_get_sends_bearer_token(client, requests_mock):
    adapter = requests_mock.get(f"{BASE}/projects/1/columns", json=[])
    client.get("/projects/1/columns")
    assert adapter.last_request.headers["Authorization"] == "Bearer ghp_test"


def test_get_without_token_sends_no_auth(requests_mock):
    adapter = requests_mock.get("https://testgrid.example.com/x/summary", json={})
    ApiClient("https://testgrid.example.com").get("/x/summary")
    assert "Authorization" not in adapter.last_request.headers


def test_get_accepts_absolute_url(client, requests_mock):
    requests_mock.get("https://other.example.com/issues/5", json={"number": 5})
    assert client.get("https://other.example.com/issues/5") == {"number": 5}


# ---------------------------------------------------------------------------
# get() — HTTP errors
# ---------------------------------------------------------------------------

@pytest.mark.parametrize("status", [401, 403])
def test_get_auth_failure_raises_authentication_error(client, requests_mock, status):
    requests_mock.get(f"{BASE}/x", status_code=status)
    with pytest.raises(AuthenticationError):
        client.get("/x")


def test_get_404_raises_not_found_error(client, requests_mock):
    requests_mock.get(f"{BASE}/x", status_code=404)
    with pytest.raises(NotFoundError):
        client.get("/x")


def test_get_500_raises_transport_error(client, requests_mock):
    requests_mock.get(f"{BASE}/x", status_code=500, text="Internal Server Error")
    with pytest.raises(TransportError, match="500"):
        client.get("/x")


def test_get_invalid_json_raises_decode_error(client, requests_mock):
    requests_mock.get(f"{BASE}/x", text="<html>not json</html>")
    with pytest.raises(DecodeError):
        client.get("/x")


# ---------------------------------------------------------------------------
# get() — network errors and retries
# ---------------------------------------------------------------------------

def test_get_timeout_raises_transport_error(client, requests_mock):
    requests_mock.get(f"{BASE}/x", exc=requests.exceptions.Timeout)
    with pytest.raises(TransportError, match="timed out"):
        client.get("/x")


def test_get_connection_error_raises_transport_error(client, requests_mock):
    requests_mock.get(f"{BASE}/x", exc=requests.exceptions.ConnectionError)
    with pytest.raises(TransportError, match="Unable to reach"):
        client.get("/x")


def test_get_retries_server_errors(requests_mock):
    adapter = requests_mock.get(f"{BASE}/x", [{"status_code": 503}, {"json": {"ok": True}}])
    client = ApiClient(BASE, retries=2, backoff=0)
    assert client.get("/x") == {"ok": True}
    assert adapter.call_count == 2


def test_get_retries_connection_errors_then_gives_up(requests_mock):
    adapter = requests_mock.get(f"{BASE}/x", exc=requests.exceptions.ConnectionError)
    client = ApiClient(BASE, retries=2, backoff=0)
    with pytest.raises(TransportError):
        client.get("/x")
    assert adapter.call_count == 3


def test_get_does_not_retry_client_errors(requests_mock):
    adapter = requests_mock.get(f"{BASE}/x", status_code=404)
    client = ApiClient(BASE, retries=3, backoff=0)
    with pytest.raises(NotFoundError):
        client.get("/x")
    assert adapter.call_count == 1


# ---------------------------------------------------------------------------
# iter_pages() — pagination
# ---------------------------------------------------------------------------

@pytest.mark.parametrize("total,page_size", [(7, 3), (6, 3), (1, 100), (250, 100)])
def test_iter_pages_request_count(client, requests_mock, total, page_size):
    items = list(range(total))
    pages = [items[i:i + page_size] for i in range(0, total, page_size)]
    adapters = _mock_pages(requests_mock, ITEMS, pages)

    collected = [item for page in client.iter_pages("/repos/o/r/issues", {}, page_size) for item in page]

    assert collected == items
    assert sum(a.call_count for a in adapters) == math.ceil(total / page_size) + 1


def test_iter_pages_empty_listing_costs_one_request(client, requests_mock):
    adapters = _mock_pages(requests_mock, ITEMS, [])
    assert list(client.iter_pages("/repos/o/r/issues", {})) == []
    assert adapters[0].call_count == 1


def test_iter_pages_continues_after_fully_filtered_page(client, requests_mock):
    """A page whose items are all discarded by the caller does not end pagination."""
    _mock_pages(requests_mock, ITEMS, [[{"skip": True}], [{"skip": False}]])

    kept = [
        item
        for page in client.iter_pages("/repos/o/r/issues", {}, page_size=1)
        for item in page
        if not item["skip"]
    ]
    assert kept == [{"skip": False}]


def test_iter_pages_sends_paging_params(client, requests_mock):
    adapters = _mock_pages(requests_mock, ITEMS, [[1, 2]])
    list(client.iter_pages("/repos/o/r/issues", {"labels": "kind/failing-test"}, page_size=2))

    qs = adapters[0].last_request.qs
    assert qs["per_page"] == ["2"]
    assert qs["labels"] == ["kind/failing-test"]


def test_iter_pages_propagates_page_errors(client, requests_mock):
    requests_mock.get(f"{ITEMS}?page=1", json=[1, 2])
    requests_mock.get(f"{ITEMS}?page=2", status_code=500)

    pages = client.iter_pages("/repos/o/r/issues", {}, page_size=2)
    assert next(pages) == [1, 2]
    with pytest.raises(TransportError):
        next(pages)


def test_iter_pages_rejects_non_list_page(client, requests_mock):
    requests_mock.get(f"{ITEMS}?page=1", json={"message": "oops"})
    with pytest.raises(DecodeError):
        list(client.iter_pages("/repos/o/r/issues", {}))


def test_iter_pages_is_lazy(client, requests_mock):
    adapters = _mock_pages(requests_mock, ITEMS, [[1], [2]])
    pages = client.iter_pages("/repos/o/r/issues", {}, page_size=1)
    assert sum(a.call_count for a in adapters) == 0
    next(pages)
    pages.close()
    assert adapters[2].call_count == 0


def test_iter_pages_requests_next_page_before_caller_asks(client, requests_mock):
    adapters = _mock_pages(requests_mock, ITEMS, [[1], [2]])
    pages = client.iter_pages("/repos/o/r/issues", {}, page_size=1)

    assert next(pages) == [1]
    deadline = time.monotonic() + 5
    while adapters[1].call_count == 0 and time.monotonic() < deadline:
        time.sleep(0.01)

    assert adapters[1].call_count == 1
    assert adapters[2].call_count == 0
    pages.close()


def test_iter_pages_prefetch_must_be_positive(client):
    with pytest.raises(ValueError):
        list(client.iter_pages("/repos/o/r/issues", {}, prefetch=0))
