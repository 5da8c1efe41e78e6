from __future__ import annotations

import logging
import os
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from flask import Flask, jsonify, request
from flask_cors import CORS
from pydantic import ValidationError

from powerlens.clients import AIProxyClient, BackendClient, PredictionApiClient
from powerlens.errors import (
    ForbiddenForRole,
    InsufficientHistoryError,
    InvalidInputError,
    PowerLensError,
    RemoteServiceError,
    ServiceUnavailableError,
)
from powerlens.schemas import (
    ApplianceEntry,
    FallbackForecastRequest,
    Feedback,
    ForecastRequest,
    PredictionRequest,
    Predictions,
    SessionState,
    SessionUpdate,
)
from powerlens.services.calculations import build_summary
from powerlens.services.clustering import cluster_display, run_clustering
from powerlens.services.forecast_service import request_forecast
from powerlens.services.forecasting import compute_fallback_forecast
from powerlens.services.prediction import run_prediction
from powerlens.services.recommendations import generate_recommendations, split_ai_recommendations
from powerlens.services.reports import load_reports
from powerlens.services.tariff import calculate_bill, tariff_bracket
from powerlens.session import Role, SessionStore, can_access, landing_section
from powerlens.settings import AppSettings, settings as default_settings
from powerlens.storage import FeedbackQueue, submit_feedback, sync_pending

logger = logging.getLogger(__name__)

FEEDBACK_INVALID = "Please complete all fields and choose a rating."


def _json_body() -> Dict[str, Any]:
    data = request.get_json(force=True, silent=True)
    return data if isinstance(data, dict) else {}


def create_app(
    settings: Optional[AppSettings] = None,
    session_store: Optional[SessionStore] = None,
    prediction_api: Optional[PredictionApiClient] = None,
    backend: Optional[BackendClient] = None,
    ai_proxy: Optional[AIProxyClient] = None,
    feedback_queue: Optional[FeedbackQueue] = None,
) -> Flask:
    settings = settings or default_settings
    logging.basicConfig(level=settings.log_level.upper())

    app = Flask(__name__)
    CORS(app, resources={r"*": {"origins": settings.cors_allow_origins}})

    timeout = settings.request_timeout_seconds
    sessions = session_store or SessionStore(settings.session_path, settings.default_role)
    prediction_api = prediction_api or PredictionApiClient(settings.prediction_api_url, timeout=timeout)
    backend = backend or BackendClient(settings.backend_api_url, timeout=timeout)
    ai_proxy = ai_proxy or AIProxyClient(settings.ai_proxy_url, timeout=timeout)
    feedback_queue = feedback_queue or FeedbackQueue(settings.feedback_queue_path)
    last_clustering: Dict[str, Any] = {}

    def _session_state() -> Dict[str, Any]:
        current = sessions.current
        return SessionState(
            role=current.role.value,
            household_id=current.household_id,
            landing_section=landing_section(current.role),
        ).model_dump()

    # Errors
    @app.errorhandler(ValidationError)
    def validation_failed(exc: ValidationError):
        return jsonify({"detail": str(exc)}), 400

    @app.errorhandler(PowerLensError)
    def service_failed(exc: PowerLensError):
        logger.warning("%s on %s: %s", type(exc).__name__, request.path, exc)
        if isinstance(exc, ForbiddenForRole):
            return jsonify({"detail": str(exc)}), 403
        if isinstance(exc, (InvalidInputError, InsufficientHistoryError)):
            return jsonify({"detail": str(exc)}), 400
        if isinstance(exc, ServiceUnavailableError):
            return jsonify({"detail": str(exc)}), 503
        if isinstance(exc, RemoteServiceError):
            return jsonify({"detail": exc.message or str(exc), "upstream_status": exc.status_code}), 502
        return jsonify({"detail": str(exc)}), 500

    @app.get("/health")
    def health():
        return jsonify({"status": "ok"})

    # Session / role switching
    @app.get("/api/v1/session")
    def get_session():
        return jsonify(_session_state())

    @app.put("/api/v1/session")
    def update_session():
        update = SessionUpdate(**_json_body())
        sessions.switch_role(Role.parse(update.role))
        last_clustering.clear()
        return jsonify(_session_state())

    @app.get("/api/v1/sections/<name>")
    def section_access(name: str):
        role = sessions.current.role
        allowed = can_access(role, name)
        body = {"section": name, "role": role.value, "allowed": allowed}
        return jsonify(body), (200 if allowed else 403)

    # Reports and analysis
    @app.get("/api/v1/reports")
    def reports():
        return jsonify([r.model_dump() for r in load_reports(backend, sessions.current)])

    @app.get("/api/v1/analysis/summary")
    def analysis_summary():
        items = load_reports(backend, sessions.current)
        return jsonify(build_summary(items).model_dump())

    @app.post("/api/v1/analysis/forecast")
    def forecast():
        body = ForecastRequest(**_json_body())
        items = load_reports(backend, sessions.current)
        result = request_forecast(items, sessions.current, prediction_api, months_ahead=body.months_ahead)
        return jsonify(result.model_dump())

    @app.post("/api/v1/analysis/forecast/fallback")
    def fallback_forecast():
        body = FallbackForecastRequest(**_json_body())
        return jsonify(compute_fallback_forecast(body.historical_data, body.months_ahead).model_dump())

    # Predictions
    @app.post("/api/v1/predictions")
    def create_prediction():
        body = PredictionRequest(**_json_body())
        predictions = run_prediction(body.household, body.appliances, sessions.current, prediction_api, backend)
        summary, others = split_ai_recommendations(predictions.ai_recommendations)
        payload = predictions.model_dump()
        payload["ai_summary"] = summary.model_dump() if summary else None
        payload["ai_recommendations"] = [item.model_dump() for item in others]
        return jsonify(payload)

    @app.post("/api/v1/predictions/recommendations")
    def recommendations():
        data = _json_body()
        predictions = Predictions(**(data.get("predictions") or {}))
        appliances = [ApplianceEntry(**item) for item in data.get("appliances") or []]
        budget = data.get("monthly_budget", predictions.household_data.monthly_budget)
        try:
            budget = float(budget)
        except (TypeError, ValueError):
            raise InvalidInputError("monthly_budget must be a number")
        rows = generate_recommendations(predictions, appliances, budget)
        return jsonify([row.model_dump() for row in rows])

    # Administration
    @app.post("/api/v1/admin/clustering")
    def clustering():
        if not sessions.current.is_admin:
            raise ForbiddenForRole("Access denied.")
        items = load_reports(backend, sessions.current)
        outcome = run_clustering(items, ai_proxy)
        last_clustering["outcome"] = outcome
        last_clustering["reports"] = items
        return jsonify(outcome.model_dump())

    @app.get("/api/v1/admin/clusters/<int:cluster_id>")
    def cluster_detail(cluster_id: int):
        if not sessions.current.is_admin:
            raise ForbiddenForRole("Access denied.")
        if "outcome" not in last_clustering:
            return jsonify({"detail": "Run clustering analysis first"}), 404
        display = cluster_display(last_clustering["outcome"], last_clustering["reports"], cluster_id)
        if display is None:
            return jsonify({"detail": "Unknown cluster"}), 404
        return jsonify(display.model_dump())

    # Feedback
    @app.post("/api/v1/feedback")
    def feedback():
        data = _json_body()
        data.setdefault("createdAt", datetime.now(timezone.utc).isoformat())
        data.setdefault("householdId", sessions.current.household_id)
        try:
            item = Feedback(**data)
        except ValidationError:
            raise InvalidInputError(FEEDBACK_INVALID)
        posted, message = submit_feedback(item, backend, feedback_queue)
        return jsonify({"posted": posted, "message": message})

    @app.post("/api/v1/feedback/sync")
    def feedback_sync():
        delivered = sync_pending(backend, feedback_queue)
        return jsonify({"delivered": delivered, "pending": len(feedback_queue)})

    # Tools
    @app.get("/api/v1/tools/tariff")
    def tariff():
        try:
            kwh = float(request.args.get("kwh", ""))
        except ValueError:
            return jsonify({"detail": "kwh query parameter required"}), 400
        if kwh < 0:
            return jsonify({"detail": "kwh must be >= 0"}), 400
        return jsonify({
            "kwh": kwh,
            "bill": round(calculate_bill(kwh), 2),
            "tariff_bracket": tariff_bracket(kwh),
        })

    return app


app = create_app()


if __name__ == "__main__":
    port = int(os.environ.get("PORT", "8000"))
    app.run(host="0.0.0.0", port=port, debug=True)
