"""
どこで: `engine.core.checkpoints`。
何を: マーカー（テンプレート由来）と実行時チェックポイントを 1 本のフレーム順リストで管理する。
なぜ: 次/前/位置検索を二分探索で引けるようにし、由来ごとの別コレクションで順序がずれるのを防ぐため。
"""

from __future__ import annotations

import bisect
import logging
from dataclasses import dataclass, field
from typing import Any, Iterable, Literal, Mapping, Optional

from .timing import frame_for_time

logger = logging.getLogger(__name__)

MARKER_PREFIX = "marker:"


@dataclass(frozen=True)
class MarkerPosition:
    """マーカー位置。`type="time"` は秒、`type="frame"` はフレーム番号。"""

    type: Literal["frame", "time"]
    value: float


@dataclass(frozen=True)
class Marker:
    id: str
    at: MarkerPosition
    label: Optional[str] = None
    metadata: Optional[Mapping[str, Any]] = None

    @classmethod
    def from_mapping(cls, value: "Marker | Mapping[str, Any]") -> "Marker":
        """`{"id": "intro", "at": {"type": "time", "value": 1.5}}` 形式からも構築する。"""
        if isinstance(value, Marker):
            return value
        at = value["at"]
        pos = at if isinstance(at, MarkerPosition) else MarkerPosition(at["type"], at["value"])
        if pos.type not in ("frame", "time"):
            raise ValueError(f"marker position type must be 'frame' or 'time', got {pos.type!r}")
        return cls(
            id=str(value["id"]),
            at=pos,
            label=value.get("label"),
            metadata=value.get("metadata"),
        )


@dataclass(frozen=True)
class CheckpointSource:
    type: Literal["marker", "runtime"]
    marker_id: Optional[str] = None


@dataclass(frozen=True)
class Checkpoint:
    id: str
    frame: int
    time: float
    source: CheckpointSource = field(default_factory=lambda: CheckpointSource("runtime"))
    label: Optional[str] = None
    metadata: Optional[Mapping[str, Any]] = None


class CheckpointResolver:
    """フレーム昇順の単一リストでチェックポイントを保持する。

    - 同一フレームは挿入順を保つ（安定）。
    - マーカーは `[0, total_frames)` 外なら捨てる。ID は `marker:<id>`。
    - 実行時チェックポイントのみ `remove()` で削除可能。
    """

    def __init__(
        self,
        markers: Iterable["Marker | Mapping[str, Any]"] = (),
        *,
        total_frames: int,
        fps: float,
    ) -> None:
        self._total_frames = int(total_frames)
        self._fps = float(fps)
        self._frames: list[int] = []
        self._items: list[Checkpoint] = []
        self._by_id: dict[str, Checkpoint] = {}
        for raw in markers:
            self._add_marker(Marker.from_mapping(raw))

    # ---- 構築 ----
    def _add_marker(self, marker: Marker) -> None:
        if marker.at.type == "time":
            frame = frame_for_time(marker.at.value, self._fps)
        else:
            frame = int(marker.at.value)
        if frame < 0 or frame >= self._total_frames:
            logger.debug("marker %r at frame %d is outside the timeline; dropped", marker.id, frame)
            return
        cp = Checkpoint(
            id=f"{MARKER_PREFIX}{marker.id}",
            frame=frame,
            time=frame / self._fps,
            source=CheckpointSource("marker", marker_id=marker.id),
            label=marker.label,
            metadata=marker.metadata,
        )
        self._insert(cp)

    def _insert(self, cp: Checkpoint) -> None:
        if cp.id in self._by_id:
            raise ValueError(f"checkpoint id already exists: {cp.id!r}")
        idx = bisect.bisect_right(self._frames, cp.frame)
        self._frames.insert(idx, cp.frame)
        self._items.insert(idx, cp)
        self._by_id[cp.id] = cp

    # ---- 参照 ----
    @property
    def total_frames(self) -> int:
        return self._total_frames

    def all(self) -> list[Checkpoint]:
        return list(self._items)

    def get(self, checkpoint_id: str) -> Optional[Checkpoint]:
        return self._by_id.get(checkpoint_id)

    def get_at(self, frame: int) -> Optional[Checkpoint]:
        """`frame` 以下で最も後ろのチェックポイント（なければ None）。"""
        idx = bisect.bisect_right(self._frames, frame) - 1
        return self._items[idx] if idx >= 0 else None

    def get_next(self, frame: int) -> Optional[Checkpoint]:
        """`frame` より厳密に後ろの最初のチェックポイント。"""
        idx = bisect.bisect_right(self._frames, frame)
        return self._items[idx] if idx < len(self._items) else None

    def get_previous(self, frame: int) -> Optional[Checkpoint]:
        """`frame` より厳密に前の最後のチェックポイント。"""
        idx = bisect.bisect_left(self._frames, frame) - 1
        return self._items[idx] if idx >= 0 else None

    def marker_checkpoints(self) -> list[Checkpoint]:
        return [cp for cp in self._items if cp.source.type == "marker"]

    def runtime_checkpoints(self) -> list[Checkpoint]:
        return [cp for cp in self._items if cp.source.type == "runtime"]

    # ---- 実行時追加/削除 ----
    def add(
        self,
        checkpoint_id: str,
        frame: int,
        *,
        label: Optional[str] = None,
        metadata: Optional[Mapping[str, Any]] = None,
    ) -> Checkpoint:
        """実行時チェックポイントを追加する（フレームは範囲内に丸める）。"""
        clamped = max(0, min(int(frame), max(1, self._total_frames) - 1))
        cp = Checkpoint(
            id=checkpoint_id,
            frame=clamped,
            time=clamped / self._fps,
            source=CheckpointSource("runtime"),
            label=label,
            metadata=metadata,
        )
        self._insert(cp)
        return cp

    def remove(self, checkpoint_id: str) -> bool:
        """実行時チェックポイントを削除する。マーカー由来/未登録なら False。"""
        cp = self._by_id.get(checkpoint_id)
        if cp is None or cp.source.type != "runtime":
            return False
        idx = self._items.index(cp)
        del self._items[idx]
        del self._frames[idx]
        del self._by_id[checkpoint_id]
        return True

    def __len__(self) -> int:
        return len(self._items)


__all__ = [
    "Checkpoint",
    "CheckpointResolver",
    "CheckpointSource",
    "MARKER_PREFIX",
    "Marker",
    "MarkerPosition",
]
