import pytest

from george_rl.environment.world import TileType
from george_rl.training.messages import (
    BatchUpdate,
    ErrorResponse,
    PauseCommand,
    ResetCommand,
    SetConfigCommand,
    StartCommand,
    StateChange,
    TrainingState,
)
from george_rl.training.scheduler import DEFAULT_BATCH_SIZE, TrainingScheduler, episode_delay

from tests.conftest import FakeLoop, make_test_config, make_test_grid


def _scheduler(config=None, grid=None):
    emitted = []
    loop = FakeLoop()
    scheduler = TrainingScheduler(emitted.append, loop, seed=0)
    scheduler.handle(ResetCommand(grid or make_test_grid(), config or make_test_config()))
    emitted.clear()
    return scheduler, loop, emitted


def _batches(emitted):
    return [r for r in emitted if isinstance(r, BatchUpdate)]


def test_episode_delay():
    assert episode_delay(1) == pytest.approx(1.0)
    assert episode_delay(50) == pytest.approx(0.02)
    assert episode_delay(3) == pytest.approx(0.333)
    assert episode_delay(5000) == pytest.approx(0.001)
    assert episode_delay(0) == pytest.approx(1.0)


def test_reset_emits_idle_state():
    emitted = []
    scheduler = TrainingScheduler(emitted.append, FakeLoop())
    config = make_test_config()
    scheduler.handle(ResetCommand(make_test_grid(), config))

    assert len(emitted) == 1
    change = emitted[0]
    assert isinstance(change, StateChange)
    assert change.training_state == TrainingState.IDLE
    assert change.current_episode == 0
    assert change.resources.time_remaining == config.time_limit
    assert scheduler.state.last_path == [(1, 1)]


def test_start_then_pause_flushes_exactly_one_paused_batch():
    scheduler, loop, emitted = _scheduler()

    scheduler.handle(StartCommand(batch_size=10))
    scheduler.handle(PauseCommand())

    assert isinstance(emitted[0], StateChange)
    assert emitted[0].training_state == TrainingState.RUNNING
    batches = _batches(emitted)
    assert len(batches) == 1
    assert batches[0].training_state == TrainingState.PAUSED
    assert batches[0].stats == ()
    assert batches[0].current_episode == 0
    assert loop.pending == []


def test_pause_flush_carries_partial_batch():
    scheduler, loop, emitted = _scheduler()
    scheduler.handle(StartCommand(batch_size=10))
    for _ in range(3):
        loop.run_next()
    scheduler.handle(PauseCommand())

    batches = _batches(emitted)
    assert len(batches) == 1
    update = batches[0]
    assert update.training_state == TrainingState.PAUSED
    assert [s.episode for s in update.stats] == [1, 2, 3]
    assert len(update.routes) == 3
    assert update.current_episode == 3
    assert update.agent_path[0] == (1, 1)
    assert update.q_table


def test_running_batches_flush_at_batch_size():
    scheduler, loop, emitted = _scheduler()
    scheduler.handle(StartCommand(batch_size=2))
    for _ in range(5):
        loop.run_next()

    batches = _batches(emitted)
    assert len(batches) == 2
    assert all(b.training_state == TrainingState.RUNNING for b in batches)
    assert [len(b.stats) for b in batches] == [2, 2]
    assert batches[1].stats[0].episode == 3
    assert len(scheduler.state.batch_stats) == 1


def test_non_positive_batch_size_uses_default():
    scheduler, _, _ = _scheduler()
    scheduler.handle(StartCommand(batch_size=0))
    assert scheduler.state.batch_size == DEFAULT_BATCH_SIZE


def test_tick_delay_follows_speed():
    scheduler, loop, _ = _scheduler(config=make_test_config(speed=4))
    scheduler.handle(StartCommand(batch_size=2))
    assert loop.pending[0].delay == pytest.approx(0.25)


def test_completion_flushes_complete_batch_and_stops():
    scheduler, loop, emitted = _scheduler(config=make_test_config(episodes=3))
    scheduler.handle(StartCommand(batch_size=10))
    loop.run_until_idle()

    batches = _batches(emitted)
    assert len(batches) == 1
    assert batches[0].training_state == TrainingState.COMPLETE
    assert len(batches[0].stats) == 3
    assert scheduler.state.current_episode == 3
    assert scheduler.state.training_state == TrainingState.COMPLETE
    assert not scheduler.state.is_running
    assert loop.pending == []


def test_completion_on_batch_boundary_sends_final_batch_once():
    scheduler, loop, emitted = _scheduler(config=make_test_config(episodes=4))
    scheduler.handle(StartCommand(batch_size=2))
    loop.run_until_idle()

    batches = _batches(emitted)
    assert [b.training_state for b in batches] == [TrainingState.RUNNING, TrainingState.COMPLETE]
    assert sum(len(b.stats) for b in batches) == 4


def test_reset_mid_run_clears_progress():
    scheduler, loop, emitted = _scheduler()
    scheduler.handle(StartCommand(batch_size=10))
    for _ in range(3):
        loop.run_next()

    scheduler.handle(ResetCommand(make_test_grid(), make_test_config()))

    assert loop.pending == []
    assert scheduler.state.current_episode == 0
    assert scheduler.state.batch_stats == []
    assert scheduler.state.batch_routes == []
    assert scheduler.state.agent.get_q_table() == {}
    assert isinstance(emitted[-1], StateChange)
    assert emitted[-1].training_state == TrainingState.IDLE

    emitted.clear()
    scheduler.handle(PauseCommand())
    update = _batches(emitted)[0]
    assert update.stats == ()
    assert update.routes == ()
    assert update.current_episode == 0


def test_double_start_does_not_double_schedule():
    scheduler, loop, emitted = _scheduler()
    scheduler.handle(StartCommand(batch_size=10))
    scheduler.handle(StartCommand(batch_size=10))

    assert len(loop.pending) == 1
    assert len([r for r in emitted if isinstance(r, StateChange)]) == 1

    for _ in range(4):
        loop.run_next()
    assert scheduler.state.current_episode == 4
    assert len(loop.pending) == 1


def test_resume_after_pause_continues_counting():
    scheduler, loop, _ = _scheduler()
    scheduler.handle(StartCommand(batch_size=10))
    loop.run_next()
    loop.run_next()
    scheduler.handle(PauseCommand())
    assert loop.run_next() is False

    scheduler.handle(StartCommand(batch_size=10))
    loop.run_next()
    assert scheduler.state.current_episode == 3


def test_unknown_command_reports_error():
    scheduler, _, emitted = _scheduler()
    scheduler.handle(object())
    assert emitted == [ErrorResponse("Unknown command: object")]


def test_reset_with_bad_grid_reports_error_and_stays_idle():
    scheduler, loop, emitted = _scheduler()
    grid = make_test_grid()
    grid[1][1] = TileType.EMPTY

    scheduler.handle(ResetCommand(grid, make_test_config()))

    assert len(emitted) == 2
    assert isinstance(emitted[0], ErrorResponse)
    assert "KID" in emitted[0].message
    assert isinstance(emitted[1], StateChange)
    assert emitted[1].training_state == TrainingState.IDLE
    assert scheduler.state.training_state == TrainingState.IDLE
    assert scheduler.state.env is None
    assert scheduler.state.agent is None

    emitted.clear()
    scheduler.handle(StartCommand(batch_size=10))
    assert isinstance(emitted[0], ErrorResponse)
    assert loop.pending == []


def test_reset_with_invalid_config_reports_error():
    scheduler, _, emitted = _scheduler()
    scheduler.handle(ResetCommand(make_test_grid(), make_test_config().replace(time_bucket_size=0)))
    assert isinstance(emitted[0], ErrorResponse)
    assert "time_bucket_size" in emitted[0].message


def test_pause_without_agent_emits_state_only():
    emitted = []
    scheduler = TrainingScheduler(emitted.append, FakeLoop())
    scheduler.handle(PauseCommand())
    assert len(emitted) == 1
    assert isinstance(emitted[0], StateChange)


def test_start_without_reset_uses_constructor_snapshot():
    emitted = []
    loop = FakeLoop()
    scheduler = TrainingScheduler(
        emitted.append, loop, grid=make_test_grid(), config=make_test_config(episodes=2)
    )
    scheduler.handle(StartCommand(batch_size=5))
    loop.run_until_idle()
    batches = _batches(emitted)
    assert batches[-1].training_state == TrainingState.COMPLETE
    assert batches[-1].current_episode == 2


def test_set_config_keeps_learning_and_progress():
    scheduler, loop, _ = _scheduler()
    scheduler.handle(StartCommand(batch_size=10))
    loop.run_next()
    loop.run_next()
    agent = scheduler.state.agent
    table_size = len(agent.get_q_table())

    new_config = scheduler.state.config.replace(learning_rate=0.5, speed=10)
    scheduler.handle(SetConfigCommand(new_config))

    assert scheduler.state.agent is agent
    assert len(agent.get_q_table()) == table_size
    assert agent.config.learning_rate == 0.5
    assert scheduler.state.current_episode == 2
    assert scheduler.state.env.config is new_config

    loop.run_next()
    assert scheduler.state.current_episode == 3
    assert loop.pending[0].delay == pytest.approx(0.1)


def test_set_config_rejects_invalid():
    scheduler, _, emitted = _scheduler()
    scheduler.handle(SetConfigCommand(make_test_config().replace(default_distraction_type="ZOO")))
    assert isinstance(emitted[0], ErrorResponse)


def test_batch_q_table_is_a_snapshot():
    scheduler, loop, emitted = _scheduler()
    scheduler.handle(StartCommand(batch_size=1))
    loop.run_next()
    update = _batches(emitted)[0]
    assert update.q_table is not scheduler.state.agent.get_q_table()
    assert update.q_table == scheduler.state.agent.get_q_table()


def test_responses_echo_reset_generation():
    emitted = []
    loop = FakeLoop()
    scheduler = TrainingScheduler(emitted.append, loop, seed=0)
    scheduler.handle(ResetCommand(make_test_grid(), make_test_config(), generation=4))
    scheduler.handle(StartCommand(batch_size=1))
    loop.run_next()
    scheduler.handle(object())

    assert len(emitted) == 4
    assert all(r.generation == 4 for r in emitted)

    scheduler.handle(ResetCommand(make_test_grid(), make_test_config(), generation=5))
    assert emitted[-1].generation == 5


def test_failed_episode_pauses_and_reports_state(monkeypatch):
    scheduler, loop, emitted = _scheduler()
    scheduler.handle(StartCommand(batch_size=10))
    loop.run_next()
    emitted.clear()

    def explode(env):
        raise RuntimeError("table corrupted")

    monkeypatch.setattr(scheduler.state.agent, "train_episode", explode)
    loop.run_next()

    assert [type(r) for r in emitted] == [ErrorResponse, StateChange]
    assert emitted[0].message == "table corrupted"
    assert emitted[1].training_state == TrainingState.PAUSED
    assert emitted[1].current_episode == 1
    assert scheduler.state.training_state == TrainingState.PAUSED
    assert not scheduler.state.is_running
    assert loop.pending == []


def test_invalid_reset_mid_run_stops_and_reports_idle():
    scheduler, loop, emitted = _scheduler()
    scheduler.handle(StartCommand(batch_size=10))
    loop.run_next()
    emitted.clear()

    scheduler.handle(ResetCommand(make_test_grid(), make_test_config().replace(time_bucket_size=0)))

    assert [type(r) for r in emitted] == [ErrorResponse, StateChange]
    assert emitted[1].training_state == TrainingState.IDLE
    assert loop.pending == []
    assert scheduler.state.agent is None
