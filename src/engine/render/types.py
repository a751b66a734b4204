"""
どこで: `engine.render` 型定義。
何を: レンダラ/エンコーダアダプタの Protocol と、その初期化設定・生フレーム・進捗の値型。
なぜ: 実行器を具体的なブラウザ/エンコーダから切り離し、テストではダミーへ差し替えるため。
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Optional, Protocol

import numpy as np

if TYPE_CHECKING:  # pragma: no cover - 型のみ
    from .assets import AudioTrack
    from .options import EncodingOptions

# (H, W, 4) uint8 の RGBA。レンダラの出力、エンコーダの入力。
RawFrame = np.ndarray


@dataclass(frozen=True)
class RendererConfig:
    width: int
    height: int
    fonts: tuple[str, ...] = ()
    inline_css: tuple[str, ...] = ()
    stylesheets: tuple[str, ...] = ()
    # True なら背景を透過のまま取り込む（alpha 付き出力用）
    transparent: bool = False


@dataclass(frozen=True)
class EncoderConfig:
    width: int
    height: int
    fps: float
    encoding: Optional["EncodingOptions"] = None
    audio: Optional["AudioTrack"] = None


@dataclass(frozen=True)
class RenderProgress:
    """フレームを 1 枚エンコードするごとに通知される進捗。"""

    frame: int
    total_frames: int
    fps: float

    @property
    def fraction(self) -> float:
        return (self.frame + 1) / self.total_frames if self.total_frames else 1.0


class FrameRenderer(Protocol):
    """マークアップ → ピクセルのアダプタ。

    - `init()` はセッションにつき 1 回。
    - `capture_frame()` は読み込み待ち（フォント等）を含めて同期的に 1 フレームを返す。
    - `dispose()` は何度呼ばれても安全であること。
    - 任意で `preflight()`（実行環境の事前確認）を持てる。
    """

    def init(self, config: RendererConfig) -> None: ...

    def capture_frame(self, markup: str) -> RawFrame: ...

    def dispose(self) -> None: ...


class VideoEncoder(Protocol):
    """生フレーム列 → 動画バイト列のアダプタ。

    - `add_frame()` のタイムスタンプは厳密に単調増加でなければならない。
    - `finalize()` は全フレーム投入後に 1 回だけ呼ばれ、コンテナのバイト列を返す。
    - 任意で `preflight()`（コーデック/実行ファイルの事前確認）を持てる。
    """

    def init(self, config: EncoderConfig) -> None: ...

    def add_frame(self, frame: RawFrame, timestamp_seconds: float) -> None: ...

    def finalize(self) -> bytes: ...

    def dispose(self) -> None: ...


def validate_frame_dimensions(frame: RawFrame, width: int, height: int) -> None:
    """フレーム寸法がエンコーダ寸法と一致するか確認する（リサイズはしない）。

    Raises
    ------
    ValueError
        形状が (H, W, 3|4) でない、または寸法が一致しない。
    """
    shape = getattr(frame, "shape", None)
    if shape is None or len(shape) != 3 or shape[2] not in (3, 4):
        raise ValueError(f"frame must be an (H, W, 3|4) array, got shape {shape}")
    fh, fw = int(shape[0]), int(shape[1])
    if fw != width or fh != height:
        raise ValueError(
            f"Frame dimensions {fw}x{fh} do not match encoder dimensions {width}x{height}"
        )


__all__ = [
    "EncoderConfig",
    "FrameRenderer",
    "RawFrame",
    "RenderProgress",
    "RendererConfig",
    "VideoEncoder",
    "validate_frame_dimensions",
]
