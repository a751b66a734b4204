"""
どこで: `engine.runtime` サブパッケージ。
何を: プレビュー再生の状態ストア、フレームキャッシュ、プレビュー描画セッション、再生コントローラ、タイムライン換算。
なぜ: 書き出し（render 層）とは独立に、対話的なプレビュー再生の状態遷移を扱うため。
"""

from .cache import FrameCache
from .playback import PlaybackController
from .preview import PreviewSession
from .store import PlayerConfig, PlayerState, PlayerStore, StoreCallbacks
from .timeline import checkpoint_positions, format_time, frame_from_position, progress_percent

__all__ = [
    "FrameCache",
    "PlaybackController",
    "PlayerConfig",
    "PlayerState",
    "PlayerStore",
    "PreviewSession",
    "StoreCallbacks",
    "checkpoint_positions",
    "format_time",
    "frame_from_position",
    "progress_percent",
]
