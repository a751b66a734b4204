from __future__ import annotations

import numpy as np
import pytest

from engine.core.checkpoints import CheckpointResolver
from engine.runtime import FrameCache, PlayerConfig, PlayerStore, StoreCallbacks


class _Recorder:
    def __init__(self) -> None:
        self.events: list[tuple] = []

    def callbacks(self) -> StoreCallbacks:
        return StoreCallbacks(
            on_play=lambda: self.events.append(("play",)),
            on_pause=lambda: self.events.append(("pause",)),
            on_frame_change=lambda f: self.events.append(("frame", f)),
            on_checkpoint=lambda cp: self.events.append(("checkpoint", cp.id)),
        )


def _store(rec: _Recorder | None = None, **kwargs) -> PlayerStore:
    return PlayerStore(PlayerConfig(fps=10, duration_seconds=1), rec.callbacks() if rec else None, **kwargs)


@pytest.mark.smoke
def test_initial_state_and_clamp() -> None:
    store = _store()
    st = store.state
    assert (st.current_frame, st.total_frames, st.is_playing, st.is_ready) == (0, 10, False, False)
    store.set_frame(50)
    assert store.state.current_frame == 9
    store.set_frame(-3)
    assert store.state.current_frame == 0


def test_player_config_validation() -> None:
    with pytest.raises(ValueError):
        PlayerConfig(fps=0, duration_seconds=1)
    with pytest.raises(ValueError):
        PlayerConfig(fps=10, duration_seconds=-1)
    # 0.1 フレーム → 最低 1 フレーム
    assert PlayerConfig(fps=10, duration_seconds=0.01).total_frames == 1


def test_play_at_last_frame_rewinds() -> None:
    rec = _Recorder()
    store = _store(rec)
    store.set_frame(9)
    rec.events.clear()
    store.play()
    assert store.state.current_frame == 0
    assert store.state.is_playing
    assert rec.events == [("frame", 0), ("play",)]


def test_toggle_play_pause() -> None:
    rec = _Recorder()
    store = _store(rec)
    store.toggle_play_pause()
    store.toggle_play_pause()
    assert rec.events == [("play",), ("pause",)]
    assert not store.state.is_playing


def test_scrubbing_rules() -> None:
    rec = _Recorder()
    store = _store(rec)
    store.play()
    rec.events.clear()

    store.start_scrubbing(4)
    assert store.state.is_scrubbing and not store.state.is_playing
    assert rec.events == [("pause",), ("frame", 4)]

    store.play()  # スクラブ中は無視
    assert not store.state.is_playing
    store.scrub_to(6)
    assert store.state.current_frame == 6
    store.stop_scrubbing()
    store.scrub_to(2)  # スクラブ外は無視
    assert store.state.current_frame == 6


def test_update_config_recalculates_and_clears_cache() -> None:
    store = _store()
    store.frame_cache.put(3, np.zeros((1, 1, 4), dtype=np.uint8))
    store.set_frame(9)
    store.update_config(fps=20)
    assert store.state.total_frames == 20
    assert store.state.current_frame == 9
    assert len(store.frame_cache) == 0
    store.update_config(duration_seconds=0.2)
    assert store.state.total_frames == 4
    assert store.state.current_frame == 3
    with pytest.raises(ValueError):
        store.update_config(fps=-1)


def test_subscribe_and_unsubscribe() -> None:
    store = _store()
    seen: list[int] = []
    unsubscribe = store.subscribe(lambda st: seen.append(st.current_frame))
    store.set_frame(2)
    unsubscribe()
    unsubscribe()
    store.set_frame(3)
    assert seen == [2]


def test_checkpoint_navigation() -> None:
    rec = _Recorder()
    resolver = CheckpointResolver(
        [{"id": "a", "at": {"type": "frame", "value": 2}}, {"id": "b", "at": {"type": "frame", "value": 6}}],
        total_frames=10,
        fps=10,
    )
    store = _store(rec, checkpoint_resolver=resolver)
    assert store.current_checkpoint() is None
    assert store.go_to_previous_checkpoint() is None

    assert store.go_to_next_checkpoint().id == "marker:a"
    assert store.go_to_next_checkpoint().id == "marker:b"
    assert store.go_to_next_checkpoint() is None
    assert store.go_to_previous_checkpoint().id == "marker:a"
    assert store.go_to_checkpoint("missing") is None
    assert store.go_to_checkpoint("marker:b").frame == 6
    assert store.current_checkpoint().id == "marker:b"
    assert [e for e in rec.events if e[0] == "checkpoint"] == [
        ("checkpoint", "marker:a"),
        ("checkpoint", "marker:b"),
        ("checkpoint", "marker:a"),
        ("checkpoint", "marker:b"),
    ]


def test_store_without_resolver() -> None:
    store = _store()
    assert store.go_to_next_checkpoint() is None
    assert store.current_checkpoint() is None


@pytest.mark.smoke
def test_frame_cache_lru() -> None:
    cache: FrameCache[str] = FrameCache(2)
    cache.put(1, "a")
    cache.put(2, "b")
    assert cache.get(1) == "a"
    cache.put(3, "c")
    assert 2 not in cache
    assert 1 in cache and 3 in cache
    assert len(cache) == 2
    cache.clear()
    assert cache.get(1) is None


def test_frame_cache_size(restore_settings: pytest.MonkeyPatch) -> None:
    from common import settings

    with pytest.raises(ValueError):
        FrameCache(0)
    restore_settings.setenv("MKR_FRAME_CACHE_MAXSIZE", "7")
    settings.reload_from_env()
    assert FrameCache().max_size == 7
