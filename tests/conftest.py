from __future__ import annotations

from typing import Any, Dict, List, Optional

import pytest

from powerlens.schemas import Report
from powerlens.session import DashboardSession, Role

_NO_JSON = object()


class FakeResponse:
    def __init__(self, status_code: int = 200, json_data: Any = _NO_JSON, text: str = ""):
        self.status_code = status_code
        self._json = json_data
        self.text = text

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 400

    def json(self) -> Any:
        if self._json is _NO_JSON:
            raise ValueError("No JSON body")
        return self._json


class FakeHTTP:
    """Stand-in for ``requests.Session`` routing on (method, path suffix).

    A route value may be a response, an exception to raise, or a list of
    either, consumed in order.
    """

    def __init__(self, routes: Optional[Dict[tuple, Any]] = None):
        self.routes: Dict[tuple, Any] = dict(routes or {})
        self.calls: List[Dict[str, Any]] = []

    def request(self, method: str, url: str, headers=None, timeout=None, **kwargs: Any) -> FakeResponse:
        self.calls.append({"method": method, "url": url, "timeout": timeout, **kwargs})
        for (route_method, suffix), value in self.routes.items():
            if route_method == method and url.endswith(suffix):
                if isinstance(value, list):
                    value = value.pop(0)
                if isinstance(value, BaseException):
                    raise value
                return value
        return FakeResponse(404, {"detail": "Not Found"})

    def calls_to(self, suffix: str) -> List[Dict[str, Any]]:
        return [c for c in self.calls if c["url"].endswith(suffix)]


def make_report(
    report_id: int,
    consumption: float,
    bill: Optional[float] = None,
    timestamp: str = "2024-01-01T00:00:00+00:00",
    region: Optional[str] = "Kigali",
    income_level: Optional[str] = "Medium",
    household_size: Any = 4,
    tariff_bracket: Optional[str] = None,
    appliances: Optional[list] = None,
) -> Report:
    return Report(
        id=report_id,
        timestamp=timestamp,
        consumption=consumption,
        bill=bill if bill is not None else consumption * 89,
        tariff_bracket=tariff_bracket,
        household_data={
            "region": region,
            "income_level": income_level,
            "household_size": household_size,
            "monthly_budget": 10000,
        },
        appliances=appliances or [],
    )


@pytest.fixture
def household_session() -> DashboardSession:
    return DashboardSession(role=Role.HOUSEHOLD_USER, household_id="hh-1700000000000")


@pytest.fixture
def admin_session() -> DashboardSession:
    return DashboardSession(role=Role.ADMIN, household_id="hh-1700000000000")


@pytest.fixture
def monthly_reports() -> List[Report]:
    # Deliberately out of chronological order
    return [
        make_report(3, 30.0, timestamp="2024-03-01T00:00:00+00:00"),
        make_report(1, 10.0, timestamp="2024-01-01T00:00:00+00:00"),
        make_report(2, 20.0, timestamp="2024-02-01T00:00:00+00:00"),
    ]
