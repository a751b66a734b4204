"""
どこで: `engine.runtime.timeline`。
何を: タイムライン表示用の換算（時刻表記、位置 → フレーム、進捗率、チェックポイント位置）。
"""

from __future__ import annotations

import math
from typing import Iterable

from engine.core.checkpoints import Checkpoint
from engine.core.timing import clamp_frame, round_half_up


def format_time(seconds: float) -> str:
    """秒を `MM:SS` に整形する（負値は 0、端数は切り捨て）。"""
    total = int(math.floor(max(0.0, float(seconds))))
    return f"{total // 60:02d}:{total % 60:02d}"


def frame_from_position(position: float, total_frames: int) -> int:
    """0..1 のシーク位置を最も近いフレーム番号へ換算する（範囲外は端に丸める）。"""
    pos = min(1.0, max(0.0, float(position)))
    return clamp_frame(round_half_up(pos * (total_frames - 1)), total_frames)


def progress_percent(frame: int, total_frames: int) -> float:
    """現在フレームの進捗（0..100）。総フレームが 1 以下なら 0。"""
    if total_frames <= 1:
        return 0.0
    return 100.0 * clamp_frame(frame, total_frames) / (total_frames - 1)


def checkpoint_positions(
    checkpoints: Iterable[Checkpoint], total_frames: int
) -> list[tuple[str, float]]:
    """各チェックポイントのタイムライン上の位置（id, 0..1）。"""
    span = max(1, total_frames - 1)
    return [(cp.id, min(1.0, cp.frame / span)) for cp in checkpoints]


__all__ = ["checkpoint_positions", "format_time", "frame_from_position", "progress_percent"]
