from __future__ import annotations

import pytest

from api import Player
from api.player import resolve_format
from common.errors import CompileError, PlayerNotReadyError, TemplateRuntimeError
from engine.compiler import CompileResult
from tests._utils.dummies import FakeRenderer
from tests.conftest import SIMPLE_TEMPLATE
from tests.runtime._helpers import ManualClock

RAISING_TEMPLATE = '''
def render(ctx):
    raise RuntimeError("boom")
'''


def _loaded(mode: str = "once", **kwargs):
    clock = ManualClock()
    renderer = FakeRenderer()
    player = Player(renderer, playback_mode=mode, clock=clock, **kwargs)
    frames: list[int] = []
    player.on("frame", lambda frame, image: frames.append(frame))
    result = player.load(SIMPLE_TEMPLATE)
    assert result.ok, result.error
    return player, renderer, clock, frames


@pytest.mark.smoke
def test_load_renders_first_frame() -> None:
    renderer = FakeRenderer()
    player = Player(renderer)
    events: list[str] = []
    player.on("ready", lambda: events.append("ready"))
    player.on("frame", lambda frame, image: events.append(f"frame:{frame}"))
    assert not player.is_ready

    result = player.load(SIMPLE_TEMPLATE)
    assert (result.ok, result.total_frames, result.width, result.height) == (True, 10, 320, 180)
    assert events == ["ready", "frame:0"]
    assert player.is_ready
    assert player.current_image.shape == (180, 320, 4)
    assert "0:hello" in renderer.captured[0]
    player.destroy()
    assert renderer.dispose_calls == 1


def test_operations_before_load_raise() -> None:
    player = Player(FakeRenderer())
    with pytest.raises(PlayerNotReadyError) as ei:
        player.play()
    assert ei.value.operation == "play"
    with pytest.raises(PlayerNotReadyError):
        player.seek_to_frame(3)
    with pytest.raises(PlayerNotReadyError):
        _ = player.state
    assert player.wait_idle() is True


def test_load_failures_are_returned_and_emitted() -> None:
    player = Player(FakeRenderer())
    errors: list[Exception] = []
    player.on("error", errors.append)

    bad = player.load("def render(ctx)\n    return ''\n")
    assert not bad.ok
    assert isinstance(bad.error, CompileError)

    raising = player.load(RAISING_TEMPLATE)
    assert isinstance(raising.error, TemplateRuntimeError)
    assert "boom" in str(raising.error)
    assert errors == [bad.error, raising.error]
    assert not player.is_ready


def test_empty_compile_result_is_a_load_error(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr("api.player.compile_template", lambda source: CompileResult())
    player = Player(FakeRenderer())
    result = player.load(SIMPLE_TEMPLATE)
    assert not result.ok
    assert isinstance(result.error, CompileError)
    assert result.error.phase == "contract"
    assert not player.is_ready


def test_load_with_data_and_format() -> None:
    renderer = FakeRenderer()
    player = Player(renderer, format="square")
    result = player.load(SIMPLE_TEMPLATE, data={"title": "custom"})
    assert (result.width, result.height) == (1080, 1080)
    assert "0:custom" in renderer.captured[0]


def test_events_on_and_off() -> None:
    player = Player(FakeRenderer())
    calls: list[str] = []
    off = player.on("ready", lambda: calls.append("a"))
    handler = lambda: calls.append("b")  # noqa: E731
    player.on("ready", handler)
    off()
    player.off("ready", handler)
    player.load(SIMPLE_TEMPLATE)
    assert calls == []
    with pytest.raises(ValueError):
        player.on("finished", handler)


def test_play_once_ends_at_last_frame() -> None:
    player, _, clock, frames = _loaded("once")
    events: list[str] = []
    for name in ("play", "pause", "ended"):
        player.on(name, lambda name=name: events.append(name))

    player.play()
    clock.t = 0.55
    player.tick()
    assert frames[-1] == 5
    assert player.state.current_frame == 5

    clock.t = 2.0
    player.tick()
    assert frames[-1] == 9
    assert events == ["play", "pause", "ended"]
    assert not player.state.is_playing

    # 最終フレームからの再生は先頭に戻る
    player.play()
    assert player.state.current_frame == 0


def test_loop_mode_restarts() -> None:
    player, _, clock, frames = _loaded("loop")
    player.play()
    clock.t = 1.5
    player.tick()
    assert frames[-2:] == [9, 0]
    assert player.state.is_playing
    clock.t = 1.85
    player.tick()
    assert player.state.current_frame == 3


def test_ping_pong_mode_reverses() -> None:
    player, _, clock, _ = _loaded("ping-pong")
    player.play()
    clock.t = 1.5
    player.tick()
    assert player.state.current_frame == 9
    clock.t = 1.8
    player.tick()
    assert player.state.current_frame == 6
    assert player.state.is_playing


def test_pause_and_stop() -> None:
    player, _, clock, frames = _loaded()
    player.play()
    clock.t = 0.3
    player.tick()
    player.pause()
    clock.t = 0.9
    player.tick()
    assert player.state.current_frame == 3
    player.stop()
    assert player.state.current_frame == 0
    assert not player.state.is_playing


def test_seeking() -> None:
    player, _, _, frames = _loaded()
    player.seek_to_progress(0.5)
    assert player.state.current_frame == 5
    player.seek_to_time_seconds(0.26)
    assert player.state.current_frame == 3
    player.seek_to_frame(100)
    assert player.state.current_frame == 9
    assert frames == [0, 5, 3, 9]


def test_seek_while_playing_restarts_from_new_frame() -> None:
    player, _, clock, _ = _loaded()
    player.play()
    clock.t = 0.2
    player.seek_to_frame(6)
    clock.t = 0.4
    player.tick()
    assert player.state.current_frame == 8


def test_set_format_rerenders_current_frame() -> None:
    player, renderer, _, _ = _loaded()
    player.seek_to_frame(2)
    player.set_format((200, 100))
    assert renderer.init_calls == 2
    assert player.current_image.shape == (100, 200, 4)
    with pytest.raises(ValueError):
        player.set_format("portrait")


def test_checkpoints() -> None:
    renderer = FakeRenderer()
    player = Player(renderer)
    seen: list[str] = []
    player.on("checkpoint", lambda cp: seen.append(cp.id))
    result = player.load(SIMPLE_TEMPLATE, markers=[{"id": "a", "at": {"type": "frame", "value": 3}}])
    assert [cp.id for cp in result.checkpoints] == ["marker:a"]

    player.add_checkpoint("b", 7, label="B")
    assert [cp.id for cp in player.get_checkpoints()] == ["marker:a", "b"]
    assert player.current_checkpoint() is None
    assert player.go_to_next_checkpoint().id == "marker:a"
    assert player.go_to_next_checkpoint().id == "b"
    assert player.go_to_previous_checkpoint().id == "marker:a"
    assert player.go_to_checkpoint("b").frame == 7
    assert player.current_checkpoint().label == "B"
    assert seen == ["marker:a", "b", "marker:a", "b"]

    assert not player.remove_checkpoint("marker:a")
    assert player.remove_checkpoint("b")
    assert [cp.id for cp in player.get_checkpoints()] == ["marker:a"]


def test_invalid_markers_fail_load() -> None:
    player = Player(FakeRenderer())
    result = player.load(SIMPLE_TEMPLATE, markers=[{"id": "x"}])
    assert not result.ok


def test_threaded_player_waits_for_frames() -> None:
    renderer = FakeRenderer()
    player = Player(renderer, inline=False)
    frames: list[int] = []
    player.on("frame", lambda frame, image: frames.append(frame))
    player.load(SIMPLE_TEMPLATE)
    player.seek_to_frame(4)
    assert player.wait_idle(timeout=5)
    assert frames[-1] == 4
    player.destroy()
    assert renderer.dispose_calls == 1


def test_resolve_format() -> None:
    assert resolve_format("vertical") == (1080, 1920)
    assert resolve_format((640, 360)) == (640, 360)
    assert resolve_format({"width": 10, "height": 20}) == (10, 20)
    with pytest.raises(ValueError):
        resolve_format((0, 10))
    with pytest.raises(ValueError):
        Player(FakeRenderer(), playback_mode="bounce")  # type: ignore[arg-type]


def test_failing_frame_handler_becomes_error_event() -> None:
    player = Player(FakeRenderer(), inline=False)
    errors: list[Exception] = []
    seen: list[int] = []

    def on_frame(frame, image) -> None:
        seen.append(frame)
        if frame == 0:
            raise RuntimeError("handler broke")

    player.on("frame", on_frame)
    player.on("error", errors.append)
    player.load(SIMPLE_TEMPLATE)
    assert player.wait_idle(timeout=5)
    player.seek_to_frame(7)
    assert player.wait_idle(timeout=5)
    assert seen == [0, 7]
    assert [str(e) for e in errors] == ["handler broke"]
    player.destroy()
