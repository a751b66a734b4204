"""
どこで: `common.settings`
何を: プロジェクトの環境変数を型付きで一元管理し、起動時に読み込む。
なぜ: `os.getenv` の散在を解消し、既定値/型の一貫性とテスト容易性を高めるため。
"""

from __future__ import annotations

from dataclasses import dataclass

from .env import env_bool, env_int, env_list, env_str

# テンプレートから import を許可する純粋な標準モジュール
DEFAULT_SANDBOX_MODULES: tuple[str, ...] = (
    "math",
    "cmath",
    "colorsys",
    "decimal",
    "fractions",
    "functools",
    "html",
    "itertools",
    "json",
    "operator",
    "re",
    "statistics",
    "string",
    "textwrap",
)


@dataclass
class _Settings:
    # Preview / playback
    FRAME_CACHE_MAXSIZE: int = 30

    # Renderer
    RENDERER_BACKEND: str = "playwright"
    CAPTURE_TIMEOUT_MS: int = 5000

    # Encoder
    ENCODER_BACKEND: str = "ffmpeg"

    # Template compiler
    SANDBOX_MODULES: tuple[str, ...] = DEFAULT_SANDBOX_MODULES

    # Errors / debug
    ERROR_SNAPSHOT_DEPTH: int = 2
    DEBUG_FRAMES: bool = False


_settings = _Settings()


def reload_from_env() -> None:
    """環境変数から設定を再読込。

    - bool は `env_bool`、int は `env_int`、文字列/リストは `env_str`/`env_list` を使用。
    - 一部は下限丸めを適用。
    """
    # Preview / playback（下限丸め）
    _settings.FRAME_CACHE_MAXSIZE = env_int("MKR_FRAME_CACHE_MAXSIZE", 30, min_value=1) or 1

    # Renderer
    _settings.RENDERER_BACKEND = env_str("MKR_RENDERER", "playwright")
    _settings.CAPTURE_TIMEOUT_MS = env_int("MKR_CAPTURE_TIMEOUT_MS", 5000, min_value=0) or 0

    # Encoder
    _settings.ENCODER_BACKEND = env_str("MKR_ENCODER", "ffmpeg")

    # Template compiler
    _settings.SANDBOX_MODULES = env_list("MKR_SANDBOX_MODULES", DEFAULT_SANDBOX_MODULES)

    # Errors / debug
    _settings.ERROR_SNAPSHOT_DEPTH = env_int("MKR_ERROR_SNAPSHOT_DEPTH", 2, min_value=0) or 0
    _settings.DEBUG_FRAMES = env_bool("MKR_DEBUG_FRAMES", False)


def get() -> _Settings:
    """現在の設定スナップショットを返す。"""
    return _settings


# 初期ロード
reload_from_env()


__all__ = ["DEFAULT_SANDBOX_MODULES", "get", "reload_from_env", "_Settings"]
