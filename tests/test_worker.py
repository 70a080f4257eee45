import time

from george_rl.training.messages import (
    BatchUpdate,
    ErrorResponse,
    PauseCommand,
    ResetCommand,
    StartCommand,
    StateChange,
    TrainingState,
)
from george_rl.training.worker import TrainingWorker

from tests.conftest import make_test_config, make_test_grid


def _collect_until(worker, predicate, timeout=10.0):
    seen = []
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        response = worker.get(timeout=0.1)
        if response is None:
            continue
        seen.append(response)
        if predicate(response):
            return seen
    raise AssertionError(f"condition not met, saw {seen!r}")


def _is_complete(response):
    return isinstance(response, BatchUpdate) and response.training_state == TrainingState.COMPLETE


def test_worker_trains_to_completion_in_background():
    config = make_test_config(episodes=6, speed=1000)
    with TrainingWorker(seed=0) as worker:
        assert worker.is_alive
        worker.post(ResetCommand(make_test_grid(), config))
        worker.post(StartCommand(batch_size=2))

        seen = _collect_until(worker, _is_complete)

    assert not worker.is_alive
    assert isinstance(seen[0], StateChange)
    assert seen[0].training_state == TrainingState.IDLE
    batches = [r for r in seen if isinstance(r, BatchUpdate)]
    episodes = [s.episode for b in batches for s in b.stats]
    assert episodes == [1, 2, 3, 4, 5, 6]
    assert batches[-1].current_episode == 6


def test_worker_applies_commands_in_order():
    config = make_test_config(episodes=1000, speed=1)
    with TrainingWorker(seed=0) as worker:
        worker.post(ResetCommand(make_test_grid(), config))
        worker.post(StartCommand(batch_size=10))
        worker.post(PauseCommand())

        seen = _collect_until(
            worker,
            lambda r: isinstance(r, BatchUpdate) and r.training_state == TrainingState.PAUSED,
        )

    states = [r.training_state for r in seen]
    assert states == [TrainingState.IDLE, TrainingState.RUNNING, TrainingState.PAUSED]
    assert seen[-1].current_episode == 0


def test_worker_reports_errors_without_dying():
    grid = make_test_grid()
    grid[1][3] = 0  # remove the goal
    with TrainingWorker() as worker:
        worker.post(ResetCommand(grid, make_test_config()))
        seen = _collect_until(worker, lambda r: isinstance(r, ErrorResponse))
        assert "ICE_CREAM" in seen[-1].message
        assert worker.is_alive


def test_post_starts_worker_lazily_and_close_is_idempotent():
    worker = TrainingWorker()
    assert not worker.is_alive
    worker.post(PauseCommand())
    assert worker.is_alive
    assert isinstance(worker.get(timeout=5.0), StateChange)
    worker.close()
    worker.close()
    assert not worker.is_alive
    assert worker.get(timeout=0.01) is None
    assert worker.drain() == []
