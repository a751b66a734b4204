"""
どこで: `engine.core.constants`。
何を: 解像度/fps/尺の組み込み既定値と、プレビューの既定フォーマット。
なぜ: テンプレート・ジョブ・YAML 構成のいずれも値を与えない場合の最終フォールバックを 1 箇所に置くため。
"""

from __future__ import annotations

DEFAULT_WIDTH = 1920
DEFAULT_HEIGHT = 1080
DEFAULT_FPS = 30
DEFAULT_DURATION_SECONDS = 5.0

# 出力プリセット名の既定（ctx.output.name）
DEFAULT_OUTPUT_NAME = "default"

# プレビューのフォーマット別名 → (width, height)
FORMAT_ALIASES: dict[str, tuple[int, int]] = {
    "vertical": (1080, 1920),
    "horizontal": (1920, 1080),
    "square": (1080, 1080),
}

# is_square 判定の許容幅（アスペクト比）
SQUARE_ASPECT_MIN = 0.9
SQUARE_ASPECT_MAX = 1.1

__all__ = [
    "DEFAULT_DURATION_SECONDS",
    "DEFAULT_FPS",
    "DEFAULT_HEIGHT",
    "DEFAULT_OUTPUT_NAME",
    "DEFAULT_WIDTH",
    "FORMAT_ALIASES",
    "SQUARE_ASPECT_MAX",
    "SQUARE_ASPECT_MIN",
]
