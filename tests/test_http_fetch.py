import pytest
import requests
import responses

from errors import AllEndpointsFailed, FetchError, FetchExhausted, FetchHttpError, FetchTimeout
from http_fetch import ResilientFetcher, describe_error

URL = "https://geo.example.com/json"


@pytest.fixture
def sleeps():
    return []


@pytest.fixture
def fetcher(sleeps):
    return ResilientFetcher(sleep=sleeps.append)


@responses.activate
def test_returns_json_on_first_success(fetcher, sleeps):
    responses.add(responses.GET, URL, json={"city": "Istanbul"}, status=200)

    assert fetcher.fetch_with_retry(URL) == {"city": "Istanbul"}
    assert len(responses.calls) == 1
    assert sleeps == []
    assert responses.calls[0].request.headers["Accept"] == "application/json"


@responses.activate
def test_backs_off_exponentially_then_gives_up(fetcher, sleeps):
    responses.add(responses.GET, URL, json={"error": "down"}, status=503)

    with pytest.raises(FetchExhausted) as excinfo:
        fetcher.fetch_with_retry(URL, max_attempts=3)

    assert len(responses.calls) == 3
    assert sleeps == [1, 2]
    assert excinfo.value.attempts == 3
    assert isinstance(excinfo.value.last_error, FetchHttpError)
    assert excinfo.value.last_error.status_code == 503


@responses.activate
def test_recovers_after_transient_failure(fetcher, sleeps):
    responses.add(responses.GET, URL, body=requests.ConnectionError("reset"))
    responses.add(responses.GET, URL, json={"ok": True}, status=200)

    assert fetcher.fetch_with_retry(URL, max_attempts=3) == {"ok": True}
    assert len(responses.calls) == 2
    assert sleeps == [1]


@responses.activate
def test_timeout_counts_as_failed_attempt(fetcher, sleeps):
    responses.add(responses.GET, URL, body=requests.exceptions.ReadTimeout("slow"))

    with pytest.raises(FetchExhausted) as excinfo:
        fetcher.fetch_with_retry(URL, max_attempts=2, timeout_ms=250)

    assert isinstance(excinfo.value.last_error, FetchTimeout)
    assert excinfo.value.last_error.timeout_ms == 250
    assert sleeps == [1]


@responses.activate
def test_non_json_body_is_a_failure(fetcher):
    responses.add(responses.GET, URL, body="<html>oops</html>", status=200)

    with pytest.raises(FetchExhausted) as excinfo:
        fetcher.fetch_with_retry(URL, max_attempts=1)

    assert isinstance(excinfo.value.last_error, FetchError)


@responses.activate
def test_query_parameters_are_sent(fetcher):
    responses.add(responses.GET, URL, json={}, status=200)

    fetcher.fetch_with_retry(URL, params={"city": "Istanbul", "method": 14})

    assert "city=Istanbul" in responses.calls[0].request.url
    assert "method=14" in responses.calls[0].request.url


@responses.activate
def test_falls_back_to_next_endpoint(fetcher, sleeps):
    first = "https://a.example.com/json"
    second = "https://b.example.com/json"
    responses.add(responses.GET, first, status=500)
    responses.add(responses.GET, second, json={"country": "Turkey", "city": "Izmir"}, status=200)

    result = fetcher.try_multiple_endpoints([first, second], 1)

    assert result == {"country": "Turkey", "city": "Izmir"}
    assert [call.request.url for call in responses.calls] == [first, second]
    assert sleeps == []


@responses.activate
def test_first_listed_endpoint_wins(fetcher):
    first = "https://a.example.com/json"
    second = "https://b.example.com/json"
    responses.add(responses.GET, first, json={"from": "a"}, status=200)
    responses.add(responses.GET, second, json={"from": "b"}, status=200)

    assert fetcher.try_multiple_endpoints([first, second]) == {"from": "a"}
    assert len(responses.calls) == 1


@responses.activate
def test_all_endpoints_failing_raises(fetcher):
    endpoints = ["https://a.example.com/json", "https://b.example.com/json"]
    for endpoint in endpoints:
        responses.add(responses.GET, endpoint, status=404)

    with pytest.raises(AllEndpointsFailed) as excinfo:
        fetcher.try_multiple_endpoints(endpoints, 2)

    assert len(responses.calls) == 4
    assert excinfo.value.endpoints == endpoints
    assert isinstance(excinfo.value.last_error, FetchExhausted)
    assert excinfo.value.last_error.url == endpoints[-1]


def test_describe_error_walks_the_chain():
    error = AllEndpointsFailed(["a"], FetchExhausted("a", 2, FetchHttpError("a", 500, "Server Error")))
    details = describe_error(error)
    assert details["type"] == "AllEndpointsFailed"
    assert details["cause"]["type"] == "FetchExhausted"
    assert details["cause"]["cause"]["type"] == "FetchHttpError"


@responses.activate
def test_endpoint_fallback_uses_given_timeout(fetcher, sleeps):
    endpoints = ["https://a.example.com/json", "https://b.example.com/json"]
    for endpoint in endpoints:
        responses.add(responses.GET, endpoint, body=requests.exceptions.ConnectTimeout("slow"))

    with pytest.raises(AllEndpointsFailed) as excinfo:
        fetcher.try_multiple_endpoints(endpoints, 1, timeout_ms=250)

    last_attempt = excinfo.value.last_error.last_error
    assert isinstance(last_attempt, FetchTimeout)
    assert last_attempt.timeout_ms == 250
