"""
どこで: `engine.render.markup`。
何を: キャプチャ用ページの外枠（フォント/スタイルシート/インライン CSS/ルート要素）と、背景の合成。
なぜ: レンダラ実装に依らず同じ HTML を組み立て、フレームごとにはルート要素の中身だけを差し替えるため。
"""

from __future__ import annotations

import html
import re
from typing import Optional, Sequence
from urllib.parse import quote

from .assets import Background

FRAME_ROOT_ID = "frame"
GOOGLE_FONTS_CSS = "https://fonts.googleapis.com/css2"

_CSS_IMPORT_RE = re.compile(
    r"""@import\s+(?:url\(\s*)?["']?([^"')\s;]+)["']?\s*\)?[^;]*;""",
    re.IGNORECASE,
)
_FIT_TO_SIZE = {"cover": "cover", "contain": "contain", "fill": "100% 100%"}


def google_fonts_href(fonts: Sequence[str]) -> Optional[str]:
    """Google Fonts の CSS URL（複数ファミリを 1 本に連結）。空なら None。"""
    if not fonts:
        return None
    families = "&".join(
        "family=" + quote(font.strip().replace(" ", "+"), safe="+:;@,.") for font in fonts
    )
    return f"{GOOGLE_FONTS_CSS}?{families}&display=block"


def build_page_shell(
    width: int,
    height: int,
    *,
    fonts: Sequence[str] = (),
    inline_css: Sequence[str] = (),
    stylesheets: Sequence[str] = (),
    transparent: bool = False,
) -> str:
    """キャプチャ用ページ全体の HTML を返す（ルートは `#frame`）。"""
    head: list[str] = ['<meta charset="utf-8">']
    fonts_href = google_fonts_href(fonts)
    if fonts_href:
        head.append('<link rel="preconnect" href="https://fonts.googleapis.com">')
        head.append('<link rel="preconnect" href="https://fonts.gstatic.com" crossorigin>')
        head.append(f'<link rel="stylesheet" href="{html.escape(fonts_href, quote=True)}">')
    for href in stylesheets:
        head.append(f'<link rel="stylesheet" href="{html.escape(href, quote=True)}">')
    background = "transparent" if transparent else "#ffffff"
    head.append(
        "<style>"
        f"html,body{{margin:0;padding:0;width:{width}px;height:{height}px;"
        f"overflow:hidden;background:{background};}}"
        f"#{FRAME_ROOT_ID}{{position:relative;width:{width}px;height:{height}px;overflow:hidden;}}"
        "</style>"
    )
    for css in inline_css:
        head.append(f"<style>{css}</style>")
    return (
        "<!DOCTYPE html><html><head>"
        + "".join(head)
        + f'</head><body><div id="{FRAME_ROOT_ID}"></div></body></html>'
    )


def extract_css_imports(markup: str) -> tuple[str, list[str]]:
    """マークアップ内の `@import url(...)` を取り除き、URL を出現順で返す。"""
    urls: list[str] = []

    def _take(match: "re.Match[str]") -> str:
        urls.append(match.group(1))
        return ""

    cleaned = _CSS_IMPORT_RE.sub(_take, markup)
    return cleaned, urls


def _background_style(background: Background) -> str:
    parts = ["position:absolute", "inset:0", "z-index:0", f"opacity:{background.opacity:g}"]
    if background.type == "color":
        parts.append(f"background:{background.src}")
    else:
        src = background.src.replace('"', "%22")
        parts.append(f'background-image:url("{src}")')
        parts.append(f"background-size:{_FIT_TO_SIZE[background.fit]}")
        parts.append(f"background-position:{background.position}")
        parts.append("background-repeat:no-repeat")
    return html.escape(";".join(parts), quote=True)


def build_composite_markup(
    markup: str, background: Optional[Background], width: int, height: int
) -> str:
    """背景があれば背景レイヤーの上にテンプレートの出力を重ねる。無ければそのまま。"""
    if background is None:
        return markup
    return (
        f'<div style="{_background_style(background)}"></div>'
        f'<div style="position:relative;z-index:1;width:{width}px;height:{height}px">'
        f"{markup}</div>"
    )


__all__ = [
    "FRAME_ROOT_ID",
    "build_composite_markup",
    "build_page_shell",
    "extract_css_imports",
    "google_fonts_href",
]
