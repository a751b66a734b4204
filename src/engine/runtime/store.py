"""
どこで: `engine.runtime.store`。
何を: プレビュー再生状態（現在フレーム/再生中/スクラブ中/準備完了/総フレーム）とフレームキャッシュを保持するストア。
なぜ: UI・再生コントローラ・プレビューセッションが同じ状態を参照し、遷移規則を 1 か所に集約するため。

遷移規則:
- フレームは常に `[0, total_frames - 1]` に丸める。
- スクラブ中は `play()` を無視し、`scrub_to()` はスクラブ中のみ有効。
- 最終フレームで `play()` すると 0 から再生し直す。
- コールバックと購読者はロック外で呼ぶ（コールバック内からストアを操作してよい）。
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, replace
from typing import Callable, Optional

from engine.core.checkpoints import Checkpoint, CheckpointResolver
from engine.core.template import positive_number
from engine.core.timing import clamp_frame, total_frames_for

from .cache import FrameCache

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PlayerConfig:
    fps: float
    duration_seconds: float

    def __post_init__(self) -> None:
        if positive_number(self.fps) is None:
            raise ValueError(f"fps must be a positive number, got {self.fps!r}")
        if positive_number(self.duration_seconds) is None:
            raise ValueError(f"duration_seconds must be a positive number, got {self.duration_seconds!r}")

    @property
    def total_frames(self) -> int:
        return max(1, total_frames_for(self.fps, self.duration_seconds))


@dataclass
class StoreCallbacks:
    on_play: Optional[Callable[[], None]] = None
    on_pause: Optional[Callable[[], None]] = None
    on_frame_change: Optional[Callable[[int], None]] = None
    on_checkpoint: Optional[Callable[[Checkpoint], None]] = None


@dataclass(frozen=True)
class PlayerState:
    current_frame: int
    total_frames: int
    is_playing: bool
    is_scrubbing: bool
    is_ready: bool
    fps: float
    duration_seconds: float


Listener = Callable[[PlayerState], None]


class PlayerStore:
    """再生状態の単一の置き場。全操作はスレッドセーフ。"""

    def __init__(
        self,
        config: PlayerConfig,
        callbacks: Optional[StoreCallbacks] = None,
        *,
        max_cache_size: Optional[int] = None,
        checkpoint_resolver: Optional[CheckpointResolver] = None,
    ) -> None:
        self._lock = threading.RLock()
        self._callbacks = callbacks or StoreCallbacks()
        self._listeners: list[Listener] = []
        self._cache: FrameCache = FrameCache(max_cache_size)
        self._resolver = checkpoint_resolver
        self._state = PlayerState(
            current_frame=0,
            total_frames=config.total_frames,
            is_playing=False,
            is_scrubbing=False,
            is_ready=False,
            fps=float(config.fps),
            duration_seconds=float(config.duration_seconds),
        )

    # ---- 参照 ----
    @property
    def state(self) -> PlayerState:
        with self._lock:
            return self._state

    @property
    def frame_cache(self) -> FrameCache:
        return self._cache

    @property
    def checkpoint_resolver(self) -> Optional[CheckpointResolver]:
        return self._resolver

    def set_checkpoint_resolver(self, resolver: Optional[CheckpointResolver]) -> None:
        with self._lock:
            self._resolver = resolver

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """状態変化の購読を登録し、解除関数を返す。"""
        with self._lock:
            self._listeners.append(listener)

        def _unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return _unsubscribe

    # ---- 再生 ----
    def play(self) -> None:
        with self._lock:
            st = self._state
            if st.is_scrubbing:
                return
            rewind = st.current_frame >= st.total_frames - 1
            frame = 0 if rewind else st.current_frame
            self._state = replace(st, is_playing=True, current_frame=frame)
            new = self._state
        self._emit(new)
        if rewind:
            self._fire(self._callbacks.on_frame_change, 0)
        self._fire(self._callbacks.on_play)

    def pause(self) -> None:
        with self._lock:
            self._state = replace(self._state, is_playing=False)
            new = self._state
        self._emit(new)
        self._fire(self._callbacks.on_pause)

    def toggle_play_pause(self) -> None:
        if self.state.is_playing:
            self.pause()
        else:
            self.play()

    def set_frame(self, frame: int) -> None:
        with self._lock:
            clamped = clamp_frame(frame, self._state.total_frames)
            self._state = replace(self._state, current_frame=clamped)
            new = self._state
        self._emit(new)
        self._fire(self._callbacks.on_frame_change, clamped)

    def set_ready(self, ready: bool) -> None:
        with self._lock:
            self._state = replace(self._state, is_ready=bool(ready))
            new = self._state
        self._emit(new)

    # ---- スクラブ ----
    def start_scrubbing(self, frame: int) -> None:
        with self._lock:
            was_playing = self._state.is_playing
            clamped = clamp_frame(frame, self._state.total_frames)
            self._state = replace(
                self._state, is_playing=False, is_scrubbing=True, current_frame=clamped
            )
            new = self._state
        self._emit(new)
        if was_playing:
            self._fire(self._callbacks.on_pause)
        self._fire(self._callbacks.on_frame_change, clamped)

    def scrub_to(self, frame: int) -> None:
        with self._lock:
            if not self._state.is_scrubbing:
                return
        self.set_frame(frame)

    def stop_scrubbing(self) -> None:
        with self._lock:
            self._state = replace(self._state, is_scrubbing=False)
            new = self._state
        self._emit(new)

    # ---- 設定 ----
    def update_config(
        self, *, fps: Optional[float] = None, duration_seconds: Optional[float] = None
    ) -> None:
        """fps/尺を更新し、総フレームと現在フレームを再計算、キャッシュを破棄する。"""
        with self._lock:
            st = self._state
            cfg = PlayerConfig(
                fps=st.fps if fps is None else fps,
                duration_seconds=st.duration_seconds if duration_seconds is None else duration_seconds,
            )
            total = cfg.total_frames
            self._state = replace(
                st,
                fps=float(cfg.fps),
                duration_seconds=float(cfg.duration_seconds),
                total_frames=total,
                current_frame=clamp_frame(st.current_frame, total),
            )
            new = self._state
        self._cache.clear()
        self._emit(new)

    def clear_cache(self) -> None:
        self._cache.clear()

    # ---- チェックポイント ----
    def current_checkpoint(self) -> Optional[Checkpoint]:
        with self._lock:
            if self._resolver is None:
                return None
            return self._resolver.get_at(self._state.current_frame)

    def go_to_checkpoint(self, checkpoint_id: str) -> Optional[Checkpoint]:
        with self._lock:
            cp = self._resolver.get(checkpoint_id) if self._resolver is not None else None
        return self._jump(cp)

    def go_to_next_checkpoint(self) -> Optional[Checkpoint]:
        with self._lock:
            if self._resolver is None:
                return None
            cp = self._resolver.get_next(self._state.current_frame)
        return self._jump(cp)

    def go_to_previous_checkpoint(self) -> Optional[Checkpoint]:
        with self._lock:
            if self._resolver is None:
                return None
            cp = self._resolver.get_previous(self._state.current_frame)
        return self._jump(cp)

    def _jump(self, cp: Optional[Checkpoint]) -> Optional[Checkpoint]:
        if cp is None:
            return None
        self.set_frame(cp.frame)
        self._fire(self._callbacks.on_checkpoint, cp)
        return cp

    # ---- 通知 ----
    def _emit(self, state: PlayerState) -> None:
        with self._lock:
            listeners = list(self._listeners)
        for listener in listeners:
            listener(state)

    @staticmethod
    def _fire(callback: Optional[Callable[..., None]], *args: object) -> None:
        if callback is not None:
            callback(*args)


__all__ = ["PlayerConfig", "PlayerState", "PlayerStore", "StoreCallbacks"]
