"""
どこで: `engine.export` サブパッケージ。
何を: 参照実装のアダプタ（Playwright レンダラ / ffmpeg エンコーダ）、音声処理、登録表、エクスポートサービス。
なぜ: 具体的な外部依存（ブラウザ/ffmpeg）をこの層に閉じ込め、render 層は Protocol だけに依存させるため。
"""

from .browser import PlaywrightRenderer
from .encoder import FFmpegEncoder
from .registry import create_adapters, create_encoder, create_renderer
from .service import ExportProgress, ExportService

__all__ = [
    "ExportProgress",
    "ExportService",
    "FFmpegEncoder",
    "PlaywrightRenderer",
    "create_adapters",
    "create_encoder",
    "create_renderer",
]
