"""
どこで: `common.logging`。
何を: 各モジュールが `logging.getLogger(__name__)` を使う前提で、エントリポイント用の最小構成を提供する。
なぜ: ライブラリとしては設定を押し付けず、`render_video` 等から 1 度だけ妥当な出力を得るため。
"""

from __future__ import annotations

import logging

from .env import env_str

# ブラウザ自動化/サブプロセス周りで冗長になりやすいロガー
_NOISY_LOGGERS = ("asyncio", "urllib3")


def _resolve_level(level: int | str | None) -> int:
    if level is None:
        level = env_str("MKR_LOG_LEVEL", "INFO")
    if isinstance(level, str):
        return getattr(logging, level.upper(), logging.INFO)
    return int(level)


def setup_default_logging(level: int | str | None = None) -> None:
    """最小限のロギング設定を 1 度だけ適用する。

    - `level` 省略時は `MKR_LOG_LEVEL`（既定 INFO）を使う
    - ルートロガーにハンドラが既にあれば何もしない（no-op）
    - 上位のランナー/CLI から呼び出す想定
    """
    root = logging.getLogger()
    if root.handlers:
        # アプリ側で設定済み
        return
    lvl = _resolve_level(level)
    logging.basicConfig(
        level=lvl,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(lvl, logging.WARNING))


__all__ = ["setup_default_logging"]
