"""
どこで: `engine.runtime.cache`。
何を: フレーム番号 → 取り込み済みフレーム（RawFrame）の上限付き LRU。
なぜ: スクラブ/巻き戻しで同じフレームを再描画しないため。テンプレート/寸法/設定変更時は丸ごと破棄する。
"""

from __future__ import annotations

import threading
from collections import OrderedDict
from typing import Generic, Optional, TypeVar

from common import settings

V = TypeVar("V")


class FrameCache(Generic[V]):
    """スレッドセーフな LRU。`max_size` を超えたら最も古い参照から追い出す。"""

    def __init__(self, max_size: Optional[int] = None) -> None:
        size = settings.get().FRAME_CACHE_MAXSIZE if max_size is None else int(max_size)
        if size < 1:
            raise ValueError(f"max_size must be >= 1, got {size}")
        self._max_size = size
        self._items: "OrderedDict[int, V]" = OrderedDict()
        self._lock = threading.Lock()

    @property
    def max_size(self) -> int:
        return self._max_size

    def get(self, frame: int) -> Optional[V]:
        with self._lock:
            value = self._items.get(frame)
            if value is not None:
                self._items.move_to_end(frame)
            return value

    def put(self, frame: int, value: V) -> None:
        with self._lock:
            self._items[frame] = value
            self._items.move_to_end(frame)
            while len(self._items) > self._max_size:
                self._items.popitem(last=False)

    def clear(self) -> None:
        with self._lock:
            self._items.clear()

    def __contains__(self, frame: object) -> bool:
        with self._lock:
            return frame in self._items

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)


__all__ = ["FrameCache"]
