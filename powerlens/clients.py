from __future__ import annotations

import json
import logging
from typing import Any, Dict, List, Optional

import requests

from .errors import RemoteServiceError, ServiceUnavailableError
from .settings import settings

logger = logging.getLogger(__name__)

JSON_HEADERS = {"Content-Type": "application/json", "Accept": "application/json"}


def _error_message(response: requests.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        text = (response.text or "").strip()
        return text or f"HTTP {response.status_code}"
    if isinstance(body, dict):
        detail = body.get("detail") or body.get("message")
        if detail:
            return detail if isinstance(detail, str) else json.dumps(detail)
    return json.dumps(body)


class _JsonClient:
    """Shared plumbing for the JSON services the dashboard talks to."""

    def __init__(self, base_url: str, session: Optional[requests.Session] = None, timeout: Optional[float] = None):
        self.base_url = base_url.rstrip("/")
        self.session = session or requests.Session()
        self.timeout = timeout if timeout is not None else settings.request_timeout_seconds

    def _request(self, method: str, path: str, allow_empty: bool = False, **kwargs: Any) -> Any:
        url = f"{self.base_url}{path}"
        try:
            response = self.session.request(method, url, headers=JSON_HEADERS, timeout=self.timeout, **kwargs)
        except requests.exceptions.Timeout as exc:
            raise ServiceUnavailableError(f"Request to {url} timed out") from exc
        except requests.exceptions.RequestException as exc:
            raise ServiceUnavailableError(f"Cannot connect to {url}: {exc}") from exc

        if not response.ok:
            message = _error_message(response)
            logger.error("%s %s failed: %s %s", method, url, response.status_code, message)
            raise RemoteServiceError(response.status_code, message)
        try:
            return response.json()
        except ValueError as exc:
            if allow_empty:
                # Write endpoints may acknowledge with an empty or plain-text body
                return None
            raise RemoteServiceError(response.status_code, "Response body is not valid JSON") from exc

    def get(self, path: str, **kwargs: Any) -> Any:
        return self._request("GET", path, **kwargs)

    def post(self, path: str, payload: Any, allow_empty: bool = False) -> Any:
        logger.debug("POST %s%s payload: %s", self.base_url, path, payload)
        return self._request("POST", path, allow_empty=allow_empty, json=payload)


class PredictionApiClient(_JsonClient):
    """FastAPI service hosting the supervised and time-series models."""

    def __init__(self, base_url: Optional[str] = None, **kwargs: Any):
        super().__init__(base_url or settings.prediction_api_url, **kwargs)

    def health(self) -> Dict[str, Any]:
        return self.get("/health")

    def predict(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        return self.post("/predict", payload)

    def timeseries_status(self) -> Dict[str, Any]:
        return self.get("/api/timeseries/status")

    def timeseries_forecast(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        return self.post("/api/timeseries/forecast", payload)


class BackendClient(_JsonClient):
    """Persistence API for predictions, reports and feedback."""

    def __init__(self, base_url: Optional[str] = None, **kwargs: Any):
        super().__init__(base_url or settings.backend_api_url, **kwargs)

    def list_reports(self, owner_id: Optional[str] = None, limit: int = 200) -> List[Dict[str, Any]]:
        params: Dict[str, Any] = {"limit": limit}
        if owner_id:
            params["ownerId"] = owner_id
        data = self.get("/reports", params=params)
        return data if isinstance(data, list) else []

    def save_prediction(self, payload: Dict[str, Any]) -> Any:
        return self.post("/predictions", payload, allow_empty=True)

    def post_feedback(self, payload: Dict[str, Any]) -> Any:
        return self.post("/feedback", payload, allow_empty=True)


class AIProxyClient(_JsonClient):
    """Backend proxy in front of the clustering and anomaly models."""

    def __init__(self, base_url: Optional[str] = None, **kwargs: Any):
        super().__init__(base_url or settings.ai_proxy_url, **kwargs)

    def health(self) -> bool:
        try:
            self.get("/health")
        except (ServiceUnavailableError, RemoteServiceError):
            return False
        return True

    def cluster_batch(self, households: List[Dict[str, Any]]) -> Dict[str, Any]:
        return self.post("/clustering/batch", {"households": households})
