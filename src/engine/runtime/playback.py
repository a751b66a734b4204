"""
どこで: `engine.runtime.playback`。
何を: 壁時計の経過時間から再生フレームを求め、変化したフレームだけを通知する再生コントローラ。
なぜ: ホストの tick 間隔が揺れても再生速度を fps に合わせ、描画が遅れたフレームは飛ばすため。
"""

from __future__ import annotations

import logging
import math
import time
from typing import Callable, Optional

from engine.core.tickable import Tickable

from .store import PlayerStore

logger = logging.getLogger(__name__)


class PlaybackController(Tickable):
    """`FrameClock` から駆動される再生位置の計算器。

    - `direction=-1` で逆再生（ピンポン再生の折り返し用）。
    - 最終フレーム（逆再生では先頭）を越えたら最後のフレームを通知してから `on_end` を 1 回呼び、停止する。
    """

    def __init__(
        self,
        store: PlayerStore,
        on_frame: Callable[[int], None],
        on_end: Optional[Callable[[], None]] = None,
        clock: Callable[[], float] = time.perf_counter,
    ) -> None:
        self._store = store
        self._on_frame: Optional[Callable[[int], None]] = on_frame
        self._on_end = on_end
        self._clock = clock
        self._active = False
        self._start_frame = 0
        self._start_time = 0.0
        self._direction = 1
        self._last_frame: Optional[int] = None

    @property
    def direction(self) -> int:
        return self._direction

    def is_active(self) -> bool:
        return self._active

    def play(self, from_frame: Optional[int] = None, direction: int = 1) -> None:
        if direction not in (1, -1):
            raise ValueError(f"direction must be 1 or -1, got {direction!r}")
        start = self._store.state.current_frame if from_frame is None else int(from_frame)
        self._start_frame = start
        self._start_time = self._clock()
        self._direction = direction
        self._last_frame = start
        self._active = True

    def pause(self) -> None:
        self._active = False

    def destroy(self) -> None:
        self._active = False
        self._on_frame = None
        self._on_end = None

    def tick(self, dt: float) -> None:  # noqa: ARG002 - 経過時間は clock から測る
        if not self._active:
            return
        state = self._store.state
        elapsed = max(0.0, self._clock() - self._start_time)
        offset = int(math.floor(elapsed * state.fps + 1e-9))
        frame = self._start_frame + self._direction * offset
        last = state.total_frames - 1
        if frame > last or frame < 0:
            self._emit(last if self._direction > 0 else 0)
            self._active = False
            if self._on_end is not None:
                self._on_end()
            return
        self._emit(frame)

    def _emit(self, frame: int) -> None:
        if frame == self._last_frame:
            return
        self._last_frame = frame
        if self._on_frame is not None:
            self._on_frame(frame)


__all__ = ["PlaybackController"]
