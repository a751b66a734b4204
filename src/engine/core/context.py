"""
どこで: `engine.core.context`。
何を: 1 フレーム分の入力 `RenderContext` と、その時間部分 `TimeContext` を生成する。
なぜ: エクスポートとプレビューで同一の式（frame/fps, frame/(total-1)）を共有し、出力を一致させるため。
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from types import MappingProxyType
from typing import Any, Mapping, Optional

from .constants import DEFAULT_OUTPUT_NAME, SQUARE_ASPECT_MAX, SQUARE_ASPECT_MIN


@dataclass(frozen=True)
class TimeContext:
    """エラー報告にも使う時間情報のサブセット。"""

    scene_frame: int
    scene_time_seconds: float
    scene_progress: float
    global_time_seconds: float
    global_progress: float

    def as_dict(self) -> dict[str, float]:
        return asdict(self)


@dataclass(frozen=True)
class OutputInfo:
    name: str
    width: int
    height: int
    fit: str = "stretch"


@dataclass(frozen=True)
class RenderContext:
    """テンプレートの `render(ctx)` に渡される唯一の入力。

    単一シーン構成のため global_* と scene_* は同じ値になる。
    """

    global_frame: int
    global_time_seconds: float
    global_progress: float
    total_frames: int
    total_duration_seconds: float
    scene_frame: int
    scene_time_seconds: float
    scene_progress: float
    scene_total_frames: int
    scene_duration_seconds: float
    fps: float
    width: int
    height: int
    aspect_ratio: float
    is_portrait: bool
    is_landscape: bool
    is_square: bool
    output: OutputInfo
    data: Mapping[str, Any] = field(default_factory=dict)
    scene_index: int = 0
    scene_id: str = "default"
    is_finite: bool = True

    def time_context(self) -> TimeContext:
        return TimeContext(
            scene_frame=self.scene_frame,
            scene_time_seconds=self.scene_time_seconds,
            scene_progress=self.scene_progress,
            global_time_seconds=self.global_time_seconds,
            global_progress=self.global_progress,
        )


def progress_for(frame: int, total_frames: int) -> float:
    """`frame / (total - 1)`。総フレームが 1 以下なら 0。"""
    if total_frames <= 1:
        return 0.0
    return frame / (total_frames - 1)


def create_render_context(
    frame: int,
    fps: float,
    total_frames: int,
    width: int,
    height: int,
    data: Optional[Mapping[str, Any]] = None,
    output_name: str = DEFAULT_OUTPUT_NAME,
) -> RenderContext:
    """フレーム番号から RenderContext を組み立てる。

    Parameters
    ----------
    frame : int
        0 始まりのフレーム番号。
    fps : float
        フレームレート（正）。
    total_frames : int
        総フレーム数。
    width, height : int
        出力ピクセル寸法。
    data : Mapping | None
        テンプレートに渡すデータ（読み取り専用ビューにして渡す）。
    output_name : str
        出力プリセット名。
    """
    seconds = frame / fps
    progress = progress_for(frame, total_frames)
    duration = total_frames / fps
    aspect = width / height
    return RenderContext(
        global_frame=frame,
        global_time_seconds=seconds,
        global_progress=progress,
        total_frames=total_frames,
        total_duration_seconds=duration,
        scene_frame=frame,
        scene_time_seconds=seconds,
        scene_progress=progress,
        scene_total_frames=total_frames,
        scene_duration_seconds=duration,
        fps=fps,
        width=width,
        height=height,
        aspect_ratio=aspect,
        is_portrait=aspect < 1,
        is_landscape=aspect > 1,
        is_square=SQUARE_ASPECT_MIN <= aspect <= SQUARE_ASPECT_MAX,
        output=OutputInfo(name=output_name, width=width, height=height),
        data=MappingProxyType(dict(data or {})),
    )


__all__ = [
    "OutputInfo",
    "RenderContext",
    "TimeContext",
    "create_render_context",
    "progress_for",
]
