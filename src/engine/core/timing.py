"""
どこで: `engine.core.timing`。
何を: 秒 ↔ フレームの換算（四捨五入は常に half-up）。
なぜ: Python の `round()` は偶数丸めのため、総フレーム数やマーカー位置が 0.5 境界でずれないようにする。
"""

from __future__ import annotations

import math


def round_half_up(value: float) -> int:
    """0.5 を常に切り上げる丸め（負数も +∞ 方向）。"""
    return int(math.floor(value + 0.5))


def total_frames_for(fps: float, duration_seconds: float) -> int:
    """`round(fps * duration)` の総フレーム数（切り捨てはしない）。"""
    return round_half_up(float(fps) * float(duration_seconds))


def frame_for_time(seconds: float, fps: float) -> int:
    """秒位置を最も近いフレーム番号へ換算する。"""
    return round_half_up(float(seconds) * float(fps))


def clamp_frame(frame: int, total_frames: int) -> int:
    """`0 <= frame <= total_frames - 1` に収める（total_frames < 1 は 1 とみなす）。"""
    last = max(1, int(total_frames)) - 1
    return max(0, min(int(frame), last))


__all__ = ["clamp_frame", "frame_for_time", "round_half_up", "total_frames_for"]
