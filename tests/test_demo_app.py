import importlib.util
from pathlib import Path

import pytest

from george_rl.environment.world import TileType
from george_rl.training.messages import ResetCommand, StartCommand

from tests.conftest import make_test_config, make_test_grid
from tests.test_session import FakeWorker, _batch

APP_PATH = Path(__file__).resolve().parent.parent / "demo" / "app.py"


def _load_demo_module():
    spec = importlib.util.spec_from_file_location("george_demo_app", APP_PATH)
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


@pytest.fixture
def client_and_session():
    from george_rl.training.session import TrainingSession

    worker = FakeWorker()
    session = TrainingSession(grid=make_test_grid(), config=make_test_config(), worker=worker)
    app = _load_demo_module().create_app(session)
    app.config["TESTING"] = True
    return app.test_client(), session, worker


def test_state_endpoint(client_and_session):
    client, _, _ = client_and_session
    data = client.get("/api/state").get_json()
    assert data["training_state"] == "IDLE"
    assert data["current_episode"] == 0
    assert data["resources"]["time_remaining"] == 20
    assert data["stats"]["best_episode"] is None


def test_start_and_pause(client_and_session):
    client, _, worker = client_and_session
    assert client.post("/api/start").status_code == 200
    assert [type(c) for c in worker.posted] == [ResetCommand, StartCommand]
    assert client.post("/api/pause").get_json()["training_state"] == "RUNNING"


def test_state_reflects_pumped_batches(client_and_session):
    client, session, worker = client_and_session
    client.post("/api/start")
    worker.queued.append(_batch(session, 1, 4))

    data = client.get("/api/state").get_json()
    assert data["current_episode"] == 4
    assert data["stats"]["success_rate"] == 100.0
    assert len(data["stats"]["recent"]) == 4
    assert data["agent_path"][-1] == [1, 3]


def test_reset_with_config_override(client_and_session):
    client, session, _ = client_and_session
    resp = client.post("/api/reset", json={"config": {"time_limit": 12}})
    assert resp.status_code == 200
    assert session.config.time_limit == 12
    assert resp.get_json()["resources"]["time_remaining"] == 12


def test_reset_with_bad_config(client_and_session):
    client, _, _ = client_and_session
    resp = client.post("/api/reset", json={"config": {"time_bucket_size": 0}})
    assert resp.status_code == 400
    assert "time_bucket_size" in resp.get_json()["error"]


def test_reset_with_bad_grid(client_and_session):
    client, session, _ = client_and_session
    session.grid[1][1] = TileType.EMPTY
    resp = client.post("/api/reset")
    assert resp.status_code == 400


def test_heatmap_endpoint(client_and_session):
    client, session, worker = client_and_session
    assert client.get("/api/heatmap").get_json()["data"] is None

    client.post("/api/start")
    worker.queued.append(_batch(session, 1, 2))

    route = client.get("/api/heatmap?kind=route").get_json()
    assert route["data"]["heatmap"][1][1]["band"] == "high"

    policy = client.get("/api/heatmap?kind=policy").get_json()
    assert policy["data"]["heatmap"][1][1]["best_action"] == "RIGHT"

    assert client.get("/api/heatmap?kind=bogus").status_code == 400


def test_index_renders_grid(client_and_session):
    client, _, _ = client_and_session
    text = client.get("/").get_data(as_text=True)
    assert "#" in text


def test_partial_nested_override_keeps_other_fields(client_and_session):
    client, session, _ = client_and_session
    assert client.post("/api/reset", json={"config": {"rewards": {"step": -2}}}).status_code == 200
    assert client.post("/api/reset", json={"config": {"rewards": {"goal": 50}}}).status_code == 200

    assert session.config.rewards.goal == 50
    assert session.config.rewards.step == -2
    assert session.config.rewards.failure == -50

    resp = client.post("/api/reset", json={"config": {"distraction_types": {"TV": {"fun_reward": 9}}}})
    assert resp.status_code == 200
    tv = session.config.distraction_types["TV"]
    assert tv.fun_reward == 9
    assert tv.time_penalty == 1
    assert set(session.config.distraction_types) == {"TV", "FRIENDS", "PLAYGROUND"}
