"""
Minimal Flask API for the verification realization.

Endpoints:
- GET  /            -> health check
- POST /check-cache -> {"inCache": bool, "analysis"?: {...}} for {"pgn", "locale"?}
- POST /analyze     -> {"ok", "summary", "moments", "corrections", "cached"} for {"pgn", "locale"?}
"""
from __future__ import annotations

import logging

from flask import Flask, current_app, jsonify, request

from .llm_client import AnalysisRequestError
from .service import AnalysisService

log = logging.getLogger("api")

app = Flask(__name__)


def _service() -> AnalysisService:
    svc = current_app.config.get("ANALYSIS_SERVICE")
    if svc is None:
        svc = AnalysisService()
        current_app.config["ANALYSIS_SERVICE"] = svc
    return svc


@app.route("/", methods=["GET"])
def health():
    return jsonify({"status": "ok", "message": "Chess commentary API is running"})


@app.route("/check-cache", methods=["POST"])
def check_cache():
    data = request.get_json(silent=True) or {}
    pgn = data.get("pgn")
    if not pgn or not isinstance(pgn, str):
        return jsonify({"inCache": False}), 400
    analysis = _service().check_cache(pgn, data.get("locale"))
    if analysis is None:
        return jsonify({"inCache": False})
    return jsonify({"inCache": True, "analysis": analysis})


@app.route("/analyze", methods=["POST"])
def analyze():
    data = request.get_json(silent=True) or {}
    pgn = data.get("pgn")
    if not pgn or not isinstance(pgn, str):
        return jsonify({"ok": False, "error": "Missing PGN data"}), 400
    try:
        return jsonify(_service().analyze(pgn, data.get("locale")))
    except AnalysisRequestError as exc:
        log.error("Analysis failed: %s", exc)
        return jsonify({"ok": False, "error": "Error analyzing game", "details": str(exc)}), 500


@app.after_request
def add_cors_headers(response):
    response.headers["Access-Control-Allow-Origin"] = request.headers.get("Origin", "*")
    response.headers["Access-Control-Allow-Credentials"] = "true"
    response.headers["Access-Control-Allow-Headers"] = "Content-Type, Authorization"
    response.headers["Access-Control-Allow-Methods"] = "GET, POST, OPTIONS"
    return response


@app.route("/<path:path>", methods=["OPTIONS"])
def cors_preflight(path: str):
    return app.make_response(("", 204))
