"""
どこで: `engine.core` の簡易フレームドライバ。
何を: `Tickable` の列を固定順序で呼び出す FrameClock（dt 測定とループ管理）。
なぜ: ホスト側のループ（GUI/タイマー/テスト）から呼ぶだけで再生系の更新順を統一するため。
"""

from __future__ import annotations

import time
from typing import Callable, Sequence

from .tickable import Tickable


class FrameClock:
    """登録された Tickable を固定順序で実行するだけの極小クラス。"""

    def __init__(
        self,
        tickables: Sequence[Tickable],
        *,
        clock: Callable[[], float] = time.perf_counter,
    ):
        self._tickables = tuple(tickables)
        self._clock = clock
        self._last_time = clock()

    def tick(self, dt: float | None = None) -> None:
        # dt を渡さないホストでは前回呼び出しからの経過時間を測る
        if dt is None:
            now = self._clock()
            dt = now - self._last_time
            self._last_time = now

        for t in self._tickables:
            t.tick(dt)

    def reset(self) -> None:
        """dt 計測の基準時刻を現在へ戻す（一時停止からの復帰用）。"""
        self._last_time = self._clock()
