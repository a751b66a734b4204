#!/usr/bin/env python3
"""
チュートリアル 01: テンプレートを動画に書き出す

`templates/title.py` を MP4 にレンダリングします。
ヘッドレス Chromium（`playwright install chromium`）と ffmpeg（imageio-ffmpeg 同梱）を使います。

    python tutorials/01_render_video.py            # 1280x720
    python tutorials/01_render_video.py story      # 出力プリセット 1080x1920
"""
import logging
import sys
from pathlib import Path

from api import render_video
from common.logging import setup_default_logging
from util.paths import default_video_path

HERE = Path(__file__).resolve().parent
# templates/title.py の出力プリセットと同じ寸法（ファイル名用）
PRESET_SIZES = {"default": (1280, 720), "story": (1080, 1920)}


def main():
    setup_default_logging()
    logger = logging.getLogger(__name__)
    preset = sys.argv[1] if len(sys.argv) > 1 else "default"

    def on_progress(p):
        # 10 フレームごとに進捗を出す
        if p.frame % 10 == 0 or p.frame == p.total_frames - 1:
            logger.info("frame %d/%d", p.frame + 1, p.total_frames)

    width, height = PRESET_SIZES.get(preset, PRESET_SIZES["default"])
    out = default_video_path(width, height, 30, name_prefix="title")
    render_video(
        HERE / "templates" / "title.py",
        output=out,
        output_name=preset,
        data={"title": "Hello, markreel"},
        on_progress=on_progress,
    )
    logger.info("wrote %s", out)


if __name__ == "__main__":
    main()
