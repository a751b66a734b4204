"""
どこで: `engine.export.browser`。
何を: Playwright（同期 API）のヘッドレス Chromium でマークアップを描画し、RGBA 配列として取り込むレンダラ。
なぜ: テンプレートの HTML/CSS をそのままピクセル化し、エンコーダへ渡せる形にするため。

手順:
- `init()` でページ外枠（フォント/スタイルシート/インライン CSS/`#frame`）を 1 度だけ読み込む。
- フレームごとに `@import` を `<link>` へ昇格（セッション内で重複排除）→ `#frame` の中身を差し替え
  → フォント読み込みを待つ（上限付き、超過はログのみ）→ PNG スクリーンショット → imageio で復号。
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Optional

import imageio.v3 as iio
import numpy as np
from playwright.sync_api import Error as PlaywrightError
from playwright.sync_api import TimeoutError as PlaywrightTimeoutError
from playwright.sync_api import sync_playwright

from common import settings
from common.errors import RenderEnvironmentError
from engine.render.markup import FRAME_ROOT_ID, build_page_shell, extract_css_imports
from engine.render.types import RawFrame, RendererConfig

logger = logging.getLogger(__name__)

_SET_CONTENT_JS = "([id, html]) => { document.getElementById(id).innerHTML = html; }"
_FONTS_READY_JS = """
(timeout) => Promise.race([
  document.fonts.ready.then(() => true),
  new Promise((resolve) => setTimeout(() => resolve(false), timeout)),
])
"""
_ADD_STYLESHEETS_JS = """
([urls, timeout]) => Promise.race([
  Promise.all(urls.map((href) => new Promise((resolve) => {
    const link = document.createElement('link');
    link.rel = 'stylesheet';
    link.href = href;
    link.onload = link.onerror = () => resolve();
    document.head.appendChild(link);
  }))),
  new Promise((resolve) => setTimeout(resolve, timeout)),
])
"""


def to_rgba(image: np.ndarray) -> RawFrame:
    """グレースケール/RGB/RGBA を (H, W, 4) uint8 に揃える。"""
    arr = np.asarray(image)
    if arr.dtype != np.uint8:
        arr = arr.astype(np.uint8)
    if arr.ndim == 2:
        arr = np.stack([arr, arr, arr], axis=2)
    if arr.shape[2] == 3:
        alpha = np.full(arr.shape[:2] + (1,), 255, dtype=np.uint8)
        arr = np.concatenate([arr, alpha], axis=2)
    return np.ascontiguousarray(arr)


class PlaywrightRenderer:
    """ヘッドレス Chromium によるフレームキャプチャ。"""

    def __init__(self, *, timeout_ms: Optional[int] = None, launch_args: tuple[str, ...] = ()) -> None:
        self._timeout_ms = (
            settings.get().CAPTURE_TIMEOUT_MS if timeout_ms is None else int(timeout_ms)
        )
        self._launch_args = tuple(launch_args)
        self._config: Optional[RendererConfig] = None
        self._pw: Any | None = None
        self._browser: Any | None = None
        self._context: Any | None = None
        self._page: Any | None = None
        self._imported: set[str] = set()

    # ---- adapter API ----
    def preflight(self) -> None:
        """Playwright と Chromium 実行ファイルが利用可能か確認する。"""
        try:
            with sync_playwright() as pw:
                exe = pw.chromium.executable_path
        except PlaywrightError as exc:
            raise RenderEnvironmentError(
                f"Playwright is not usable: {exc}",
                suggestion="Run `playwright install chromium`",
            ) from exc
        if not exe or not Path(exe).exists():
            raise RenderEnvironmentError(
                "Chromium for Playwright is not installed",
                details={"executable": exe},
                suggestion="Run `playwright install chromium`",
            )

    def init(self, config: RendererConfig) -> None:
        if self._page is not None:
            raise RuntimeError("renderer is already initialized")
        self._config = config
        self._imported = set()
        self._pw = sync_playwright().start()
        try:
            self._browser = self._pw.chromium.launch(headless=True, args=list(self._launch_args))
            self._context = self._browser.new_context(
                viewport={"width": config.width, "height": config.height},
                device_scale_factor=1,
                timezone_id="UTC",
                locale="en-US",
            )
            self._page = self._context.new_page()
            shell = build_page_shell(
                config.width,
                config.height,
                fonts=config.fonts,
                inline_css=config.inline_css,
                stylesheets=config.stylesheets,
                transparent=config.transparent,
            )
            try:
                self._page.set_content(shell, wait_until="load", timeout=self._timeout_ms)
            except PlaywrightTimeoutError:
                logger.warning(
                    "page resources did not finish loading within %d ms; continuing",
                    self._timeout_ms,
                )
            self._wait_for_fonts()
        except Exception:
            self.dispose()
            raise
        logger.debug("renderer ready: %dx%d", config.width, config.height)

    def capture_frame(self, markup: str) -> RawFrame:
        if self._page is None or self._config is None:
            raise RuntimeError("renderer is not initialized")
        cleaned, imports = extract_css_imports(markup)
        pending = [url for url in imports if url not in self._imported]
        if pending:
            self._page.evaluate(_ADD_STYLESHEETS_JS, [pending, self._timeout_ms])
            self._imported.update(pending)
        self._page.evaluate(_SET_CONTENT_JS, [FRAME_ROOT_ID, cleaned])
        self._wait_for_fonts()
        png = self._page.screenshot(
            type="png",
            clip={"x": 0, "y": 0, "width": self._config.width, "height": self._config.height},
            omit_background=self._config.transparent,
            animations="disabled",
        )
        return to_rgba(iio.imread(png, extension=".png"))

    def dispose(self) -> None:
        for attr, closer in (
            ("_page", "close"),
            ("_context", "close"),
            ("_browser", "close"),
            ("_pw", "stop"),
        ):
            obj = getattr(self, attr)
            setattr(self, attr, None)
            if obj is None:
                continue
            try:
                getattr(obj, closer)()
            except Exception:
                logger.debug("failed to %s %s", closer, attr, exc_info=True)

    # ---- internal helpers ----
    def _wait_for_fonts(self) -> None:
        assert self._page is not None
        ready = self._page.evaluate(_FONTS_READY_JS, self._timeout_ms)
        if not ready:
            logger.warning("fonts not ready within %d ms; capturing anyway", self._timeout_ms)


__all__ = ["PlaywrightRenderer", "to_rgba"]
