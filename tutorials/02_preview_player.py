#!/usr/bin/env python3
"""
チュートリアル 02: プレイヤーでプレビューする

`Player` にテンプレートを読み込み、ホストループから `tick()` を呼んで再生します。
描画されたフレームは RGBA の numpy 配列で `frame` イベントに届きます。
チェックポイント間の移動と、終端でのループ再生も試します。
"""
import logging
import time
from pathlib import Path

from api import Player
from common.logging import setup_default_logging
from engine.export import PlaywrightRenderer

HERE = Path(__file__).resolve().parent


def main():
    setup_default_logging()
    logger = logging.getLogger(__name__)

    player = Player(PlaywrightRenderer(), format="horizontal", playback_mode="loop")
    player.on("frame", lambda frame, image: logger.info("frame %d mean=%.1f", frame, image.mean()))
    player.on("checkpoint", lambda cp: logger.info("checkpoint %s @%d", cp.id, cp.frame))
    player.on("error", lambda err: logger.error("%s", err))

    source = (HERE / "templates" / "title.py").read_text(encoding="utf-8")
    result = player.load(
        source,
        markers=[
            {"id": "intro", "at": {"type": "time", "value": 0}},
            {"id": "settled", "at": {"type": "time", "value": 1.0}, "label": "title settled"},
        ],
    )
    if not result.ok:
        logger.error("load failed: %s", result.error)
        return

    try:
        player.go_to_checkpoint("marker:settled")
        player.play()
        deadline = time.perf_counter() + 4.0
        while time.perf_counter() < deadline:
            player.tick()
            time.sleep(1 / 30)
        player.pause()
    finally:
        player.destroy()


if __name__ == "__main__":
    main()
