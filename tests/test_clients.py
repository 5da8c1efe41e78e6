import pytest
import requests

from powerlens.clients import AIProxyClient, BackendClient, PredictionApiClient
from powerlens.errors import RemoteServiceError, ServiceUnavailableError

from conftest import FakeHTTP, FakeResponse


@pytest.mark.parametrize(
    "response, message",
    [
        (FakeResponse(422, {"detail": "household_info missing"}), "household_info missing"),
        (FakeResponse(500, {"message": "Forecasting error"}), "Forecasting error"),
        (FakeResponse(500, {"error": "boom"}), '{"error": "boom"}'),
        (FakeResponse(502, text="Bad Gateway"), "Bad Gateway"),
        (FakeResponse(504), "HTTP 504"),
    ],
)
def test_error_message_is_extracted_from_body(response, message):
    client = PredictionApiClient("http://ai.test", session=FakeHTTP({("POST", "/predict"): response}))

    with pytest.raises(RemoteServiceError) as excinfo:
        client.predict({})
    assert excinfo.value.status_code == response.status_code
    assert excinfo.value.message == message


@pytest.mark.parametrize("exc", [requests.exceptions.Timeout("slow"), requests.exceptions.ConnectionError("refused")])
def test_transport_failures_mean_unavailable(exc):
    client = PredictionApiClient("http://ai.test", session=FakeHTTP({("GET", "/health"): exc}))

    with pytest.raises(ServiceUnavailableError):
        client.health()


def test_requests_carry_timeout_and_json_body():
    http = FakeHTTP({("POST", "/api/timeseries/forecast"): FakeResponse(200, {"ok": True})})
    client = PredictionApiClient("http://ai.test/", session=http, timeout=3.5)

    assert client.timeseries_forecast({"historical_data": [1, 2, 3]}) == {"ok": True}
    call = http.calls[0]
    assert call["url"] == "http://ai.test/api/timeseries/forecast"
    assert call["timeout"] == 3.5
    assert call["json"] == {"historical_data": [1, 2, 3]}


def test_list_reports_filters_by_owner():
    http = FakeHTTP({("GET", "/reports"): FakeResponse(200, [{"id": 1}])})
    client = BackendClient("http://backend.test/api", session=http)

    assert client.list_reports(owner_id="hh-42") == [{"id": 1}]
    assert http.calls[0]["params"] == {"limit": 200, "ownerId": "hh-42"}


def test_list_reports_ignores_non_list_bodies():
    http = FakeHTTP({("GET", "/reports"): FakeResponse(200, {"reports": []})})

    assert BackendClient("http://backend.test/api", session=http).list_reports() == []


def test_proxy_health_is_boolean():
    up = AIProxyClient("http://backend.test/api/ai", session=FakeHTTP({("GET", "/health"): FakeResponse(200, {})}))
    down = AIProxyClient("http://backend.test/api/ai", session=FakeHTTP({("GET", "/health"): FakeResponse(500, {})}))

    assert up.health() is True
    assert down.health() is False


def test_cluster_batch_wraps_households():
    http = FakeHTTP({("POST", "/clustering/batch"): FakeResponse(200, {"status": "success"})})
    AIProxyClient("http://backend.test/api/ai", session=http).cluster_batch([{"total_kwh": 1}])

    assert http.calls[0]["json"] == {"households": [{"total_kwh": 1}]}
