"""
タイトルカードのテンプレート例。

フレームごとに見出しをフェードインさせ、下部に進捗バーを描く。
"""

import math

from api import define_template, escape


def ease_out(t):
    return 1 - (1 - t) ** 3


def render(ctx):
    fade = ease_out(min(1.0, ctx.scene_time_seconds / 0.8))
    lift = (1 - fade) * 40
    wobble = math.sin(ctx.scene_progress * math.pi * 2) * 4
    title = escape(str(ctx.data.get("title", "")))
    background = ctx.data.get("background", "#101418")
    return f"""
<style>
  .card {{ width: 100%; height: 100%; display: flex; align-items: center; justify-content: center;
          background: {background}; font-family: sans-serif; }}
  h1 {{ color: #f4f1ea; font-size: {ctx.height // 8}px; margin: 0; }}
  .bar {{ position: absolute; left: 0; bottom: 0; height: 12px; background: #e0a040; }}
</style>
<div class="card">
  <h1 style="opacity: {fade:.3f}; transform: translateY({lift + wobble:.1f}px)">{title}</h1>
  <div class="bar" style="width: {ctx.scene_progress * 100:.1f}%"></div>
</div>
"""


template = define_template(
    render=render,
    config={
        "width": 1280,
        "height": 720,
        "fps": 30,
        "duration_seconds": 3,
        "outputs": {"story": {"width": 1080, "height": 1920}},
    },
    defaults={"title": "markreel", "background": "#101418"},
)
