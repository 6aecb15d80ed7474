from __future__ import annotations

import logging
import os
from dataclasses import asdict
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

from dotenv import load_dotenv
from flask import Flask, jsonify, request

from ..montecarlo.config import MonteCarloConfig, _to_bool, parameters_from_dict, parameters_to_dict
from ..montecarlo.errors import ConfigurationError
from ..montecarlo.results import MonteCarloResults
from ..montecarlo.simulator import MonteCarloSimulator

logger = logging.getLogger(__name__)

app = Flask(__name__)

# Process environment wins over a local .env file
env_path = Path.cwd() / ".env"
if env_path.exists():
    load_dotenv(env_path, override=False)

HOST = os.getenv("HOST", "0.0.0.0")
PORT = int(os.getenv("PORT", "8001"))


def _statistics_payload(results: MonteCarloResults) -> Optional[Dict[str, Any]]:
    stats = results.statistics()
    if stats is None:
        return None
    return asdict(stats)


def _representative_payload(results: MonteCarloResults) -> Optional[Dict[str, Any]]:
    position = results.representative_index()
    if position is None:
        return None
    trajectory = results.trajectories[position]
    return {
        "index": trajectory.index,
        "summary": asdict(trajectory.summary),
        "yearly_data": [asdict(record) for record in trajectory.yearly_data],
    }


def _simulate(payload: Dict[str, Any]) -> Dict[str, Any]:
    params = parameters_from_dict(payload.get("parameters", payload))
    include_time_series = _to_bool(payload.get("include_time_series"), False)

    results = MonteCarloSimulator(MonteCarloConfig.from_env()).run(params)

    response: Dict[str, Any] = {
        "success": True,
        "num_simulations": results.num_simulations,
        "cancelled": results.cancelled,
        "parameters": parameters_to_dict(params),
        "statistics": _statistics_payload(results),
        "representative": _representative_payload(results),
    }
    names = params.scenario_names
    if len(names) >= 2:
        response["advantage_probability"] = {
            "first": names[0],
            "second": names[1],
            "value": results.advantage_probability(names[0], names[1]),
        }
    if params.portfolio is not None:
        response["portfolio"] = {
            "assets": params.portfolio.asset_names,
            "expected_return": params.portfolio.expected_return,
            "volatility": params.portfolio.volatility,
        }
    if include_time_series:
        response["time_series"] = [asdict(point) for point in results.time_series()]
    return response


@app.get("/health")
def health() -> Tuple[Any, int]:
    return jsonify({"ok": True, "service": "taxsim-api"}), 200


@app.post("/taxsim/api/v1/simulate")
def simulate() -> Tuple[Any, int]:
    payload = request.get_json(silent=True)
    if payload is None:
        logger.warning("Rejected simulate request without JSON body")
        return jsonify({"success": False, "error": "Request JSON body is required"}), 400
    if not isinstance(payload, dict):
        logger.warning("Rejected simulate request with non-object body")
        return jsonify({"success": False, "error": "Request JSON body must be an object"}), 400
    try:
        return jsonify(_simulate(payload)), 200
    except ConfigurationError as e:
        logger.warning("Rejected simulate request: %s", e)
        return jsonify({"success": False, "error": str(e)}), 400
