#!/usr/bin/env python3
"""
Interactive Demo - Flask server over a live training session.

Run with: python demo/app.py
Then poll: http://localhost:5001/api/state

Endpoints:
    GET       /              ASCII view of the house with George's last position
    POST/GET  /api/reset     re-initialise (optional JSON body {"config": {...}})
    POST/GET  /api/start     start or resume training
    POST/GET  /api/pause     pause training
    GET       /api/state     training state, resources, recent stats summary
    GET       /api/heatmap   ?kind=route (default) or ?kind=policy
"""

import os
import sys
from typing import Any, Dict, Optional

from flask import Flask, Response, jsonify, request

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from george_rl.config import InvalidConfigError, WorldConfig
from george_rl.environment.world import render_ascii
from george_rl.evaluation.metrics import summarize_stats
from george_rl.training.session import TrainingSession


def _merge_overrides(base: Dict[str, Any], overrides: Dict[str, Any]) -> Dict[str, Any]:
    """Merge overrides into base; nested dicts (rewards, distraction_types) key by key."""
    merged = dict(base)
    for key, value in overrides.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _merge_overrides(merged[key], value)
        else:
            merged[key] = value
    return merged


def _serialize_heatmap(heatmap) -> Optional[Dict[str, Any]]:
    if heatmap is None:
        return None
    rows = []
    for row in heatmap.heatmap:
        cells = []
        for cell in row:
            if cell is None:
                cells.append(None)
                continue
            data = dict(vars(cell))
            if data.get("best_action") is not None:
                data["best_action"] = data["best_action"].name
            cells.append(data)
        rows.append(cells)
    return {"heatmap": rows}


def _state_payload(session: TrainingSession) -> Dict[str, Any]:
    summary = summarize_stats(session.episode_stats)
    best = summary["best_episode"]
    return {
        "training_state": session.training_state.value,
        "current_episode": session.current_episode,
        "episodes": session.config.episodes,
        "resources": session.resources.to_dict(),
        "agent_path": [list(p) for p in session.agent_path],
        "last_error": session.last_error,
        "stats": {
            "success_rate": summary["success_rate"],
            "average_reward": summary["average_reward"],
            "best_episode": best.to_dict() if best is not None else None,
            "rolling_window": summary["rolling_window"],
            "trend": summary["trend"],
            "cohorts": summary["cohort_data"],
            "recent": [s.to_dict() for s in session.episode_stats[-20:]],
        },
    }


def create_app(session: Optional[TrainingSession] = None) -> Flask:
    """
    Build the demo app around a TrainingSession.

    Parameters:
    -----------
    session : TrainingSession, optional
        Injected for tests; otherwise a default session is created
    """
    app = Flask(__name__)
    session = session if session is not None else TrainingSession()
    app.config["TRAINING_SESSION"] = session

    @app.route("/")
    def index():
        session.pump()
        position = session.agent_path[-1] if session.agent_path else None
        return Response(render_ascii(session.grid, position) + "\n", mimetype="text/plain")

    @app.route("/api/reset", methods=["GET", "POST"])
    def reset():
        body = request.get_json(silent=True) or {}
        overrides = body.get("config")
        if overrides:
            try:
                config = WorldConfig.from_dict(_merge_overrides(session.config.to_dict(), overrides)).validate()
            except (InvalidConfigError, TypeError) as exc:
                return jsonify({"error": str(exc)}), 400
            session.config = config
        if not session.initialize():
            return jsonify({"error": session.last_error}), 400
        return jsonify(_state_payload(session))

    @app.route("/api/start", methods=["GET", "POST"])
    def start():
        if not session.start():
            return jsonify({"error": session.last_error}), 400
        return jsonify(_state_payload(session))

    @app.route("/api/pause", methods=["GET", "POST"])
    def pause():
        session.pause()
        session.pump(timeout=0.2)
        return jsonify(_state_payload(session))

    @app.route("/api/state")
    def get_state():
        session.pump()
        return jsonify(_state_payload(session))

    @app.route("/api/heatmap")
    def heatmap():
        session.pump()
        kind = request.args.get("kind", "route")
        if kind == "route":
            data = session.route_heatmap()
        elif kind == "policy":
            data = session.policy_heatmap()
        else:
            return jsonify({"error": f"Unknown heatmap kind: {kind}"}), 400
        return jsonify({"kind": kind, "data": _serialize_heatmap(data)})

    return app


if __name__ == "__main__":
    app = create_app()
    print("\n" + "=" * 50)
    print("Demo running at http://localhost:5001")
    print("=" * 50 + "\n")
    try:
        app.run(host="0.0.0.0", port=5001, debug=False)
    finally:
        app.config["TRAINING_SESSION"].stop()
