import pytest

from morphfield.engine import MorphEngine
from morphfield.frame_loop import FrameLoop


@pytest.fixture
def engine(small_config):
    return MorphEngine(small_config, seed=2)


def test_tick_updates_then_draws(engine) -> None:
    drawn = []
    loop = FrameLoop(engine, drawn.append, clock=lambda: 2.0)

    assert loop.tick() is True
    assert loop.tick() is True

    assert loop.frames == 2
    assert len(drawn) == 2
    assert drawn[-1] is engine.last_batch
    assert engine.state.clock == 2.0


def test_stop_is_idempotent_and_releases_once(engine) -> None:
    calls = []
    loop = FrameLoop(engine, lambda batch: None)
    loop.add_finalizer(lambda: calls.append("timer"))
    loop.add_finalizer(lambda: calls.append("sprites"))

    assert loop.stop() is True
    assert loop.stop() is False

    assert calls == ["sprites", "timer"]
    assert engine.released
    assert not loop.running
    assert loop.tick() is False


def test_finalizer_added_after_stop_runs_immediately(engine) -> None:
    loop = FrameLoop(engine, lambda batch: None)
    loop.stop()
    calls = []

    loop.add_finalizer(lambda: calls.append(1))

    assert calls == [1]


def test_draw_failure_tears_down_then_propagates(engine) -> None:
    released = []

    def draw(batch):
        raise RuntimeError("surface lost")

    loop = FrameLoop(engine, draw)
    loop.add_finalizer(lambda: released.append(True))

    with pytest.raises(RuntimeError, match="surface lost"):
        loop.tick()

    assert released == [True]
    assert engine.released
    assert loop.state == FrameLoop.STOPPED
    assert loop.frames == 0


def test_context_manager_releases_on_exit(engine) -> None:
    with pytest.raises(KeyError):
        with FrameLoop(engine, lambda batch: None) as loop:
            loop.tick()
            raise KeyError("boom")

    assert engine.released
    assert not loop.running
