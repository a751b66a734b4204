"""
どこで: `engine.runtime.preview`。
何を: テンプレートの 1 フレームをレンダラで描画してキャッシュし、表示コールバックへ渡すプレビューセッション。
なぜ: スクラブ等でフレーム要求が連続しても描画を 1 本に絞り、最後に要求されたフレームへ収束させるため。

動作:
- 描画中は常に 1 フレームだけ。`request_frame()` は「最新の要求フレーム」を上書きするだけ。
- 描画が終わった時点で最新要求が今描いたフレームと異なれば、それを描き直す（途中の要求は捨てる）。
- キャッシュに当たれば描画しない。テンプレート/寸法の変更でキャッシュを丸ごと破棄する。
- `inline=True` は呼び出しスレッドで描画、`inline=False` は専用のデーモンスレッド 1 本で描画する。
  レンダラの init/capture/dispose は必ず同じスレッドで呼ぶ（Playwright の同期 API はスレッドに束縛される）。
"""

from __future__ import annotations

import logging
import threading
from typing import Any, Callable, Mapping, Optional, Sequence

from common.errors import MarkreelError, RenderError
from engine.core.context import create_render_context
from engine.core.frame import render_frame_markup
from engine.core.template import Template
from engine.core.timing import clamp_frame
from engine.render.types import FrameRenderer, RawFrame, RendererConfig

from .store import PlayerStore

logger = logging.getLogger(__name__)

PresentCallback = Callable[[int, RawFrame], None]
ErrorCallback = Callable[[Exception], None]


class PreviewSession:
    """1 テンプレート分のプレビュー描画を管理する。"""

    def __init__(
        self,
        template: Template,
        renderer: FrameRenderer,
        store: PlayerStore,
        *,
        width: int,
        height: int,
        data: Optional[Mapping[str, Any]] = None,
        fonts: Sequence[str] = (),
        inline_css: Sequence[str] = (),
        stylesheets: Sequence[str] = (),
        on_present: Optional[PresentCallback] = None,
        on_error: Optional[ErrorCallback] = None,
        inline: bool = True,
    ) -> None:
        self._template = template
        self._renderer = renderer
        self._store = store
        self._width = int(width)
        self._height = int(height)
        self._data = dict(data or {})
        self._fonts = tuple(fonts)
        self._inline_css = tuple(inline_css)
        self._stylesheets = tuple(stylesheets)
        self._on_present = on_present
        self._on_error = on_error
        self._inline = bool(inline)

        self._cv = threading.Condition()
        self._wanted: Optional[int] = None
        self._busy = False
        self._generation = 0
        self._renderer_ready = False
        self._needs_reinit = False
        self._closed = False
        self._thread: Optional[threading.Thread] = None
        if not self._inline:
            self._thread = threading.Thread(target=self._worker, name="PreviewRenderer", daemon=True)
            self._thread.start()

    # ---- public API ----
    @property
    def size(self) -> tuple[int, int]:
        return self._width, self._height

    def request_frame(self, frame: int) -> None:
        """表示したいフレームを要求する（最新の要求だけが意味を持つ）。"""
        with self._cv:
            if self._closed:
                return
            self._wanted = clamp_frame(frame, self._store.state.total_frames)
            if not self._inline:
                self._cv.notify_all()
                return
            if self._busy:
                # 表示コールバック内からの再要求。外側のループが拾う
                return
        self._drain()

    def set_template(self, template: Template, data: Optional[Mapping[str, Any]] = None) -> None:
        """テンプレート（とデータ）を差し替え、キャッシュを破棄する。"""
        with self._cv:
            self._template = template
            if data is not None:
                self._data = dict(data)
            self._generation += 1
        self._store.clear_cache()

    def set_size(self, width: int, height: int) -> None:
        """出力寸法を変更する。次の描画でレンダラを初期化し直す。"""
        with self._cv:
            if (int(width), int(height)) == (self._width, self._height):
                return
            self._width = int(width)
            self._height = int(height)
            self._generation += 1
            self._needs_reinit = True
        self._store.clear_cache()

    def wait_idle(self, timeout: Optional[float] = None) -> bool:
        """描画中/未処理の要求が無くなるまで待つ。タイムアウトなら False。"""
        with self._cv:
            return self._cv.wait_for(
                lambda: self._closed or (not self._busy and self._wanted is None), timeout
            )

    def close(self, timeout: float = 5.0) -> None:
        """セッションを閉じ、レンダラを破棄する（多重呼び出しに安全）。"""
        with self._cv:
            if self._closed:
                return
            self._closed = True
            self._wanted = None
            self._cv.notify_all()
        if self._thread is not None:
            self._thread.join(timeout=timeout)
        else:
            self._dispose_renderer()

    # ---- 描画ループ ----
    def _worker(self) -> None:
        while True:
            with self._cv:
                self._cv.wait_for(lambda: self._closed or self._wanted is not None)
                if self._closed:
                    break
            try:
                self._drain()
            except Exception:
                logger.exception("preview worker iteration failed")
        self._dispose_renderer()

    def _drain(self) -> None:
        with self._cv:
            if self._busy or self._wanted is None:
                return
            self._busy = True
        try:
            while True:
                with self._cv:
                    frame = self._wanted
                    if frame is None or self._closed:
                        return
                    self._wanted = None
                    generation = self._generation
                    template = self._template
                    data = {**self._template.defaults, **self._data}
                    size = (self._width, self._height)
                image = self._produce(frame, generation, template, data, size)
                with self._cv:
                    if generation != self._generation:
                        # 描画中に無効化された。新しい要求が無ければ同じフレームを描き直す
                        if self._wanted is None:
                            self._wanted = frame
                        continue
                    if self._wanted == frame:
                        self._wanted = None
                if image is not None:
                    self._present(frame, image)
        finally:
            with self._cv:
                self._busy = False
                self._cv.notify_all()

    def _produce(
        self,
        frame: int,
        generation: int,
        template: Template,
        data: Mapping[str, Any],
        size: tuple[int, int],
    ) -> Optional[RawFrame]:
        cache = self._store.frame_cache
        cached = cache.get(frame)
        if cached is not None:
            return cached
        state = self._store.state
        ctx = create_render_context(frame, state.fps, state.total_frames, size[0], size[1], data=data)
        try:
            markup = render_frame_markup(template, ctx)
            self._ensure_renderer(size)
            try:
                image = self._renderer.capture_frame(markup)
            except MarkreelError:
                raise
            except Exception as exc:
                raise RenderError(
                    f"capture failed at frame {frame}: {type(exc).__name__}: {exc}",
                    stage="capture",
                    frame=frame,
                    original=exc,
                ) from exc
        except Exception as exc:
            self._report(exc)
            return None
        with self._cv:
            if generation == self._generation:
                cache.put(frame, image)
        return image

    def _ensure_renderer(self, size: tuple[int, int]) -> None:
        with self._cv:
            reinit = self._needs_reinit
            self._needs_reinit = False
        if reinit:
            self._dispose_renderer()
        if self._renderer_ready:
            return
        try:
            self._renderer.init(
                RendererConfig(
                    width=size[0],
                    height=size[1],
                    fonts=self._fonts,
                    inline_css=self._inline_css,
                    stylesheets=self._stylesheets,
                )
            )
        except MarkreelError:
            raise
        except Exception as exc:
            raise RenderError(
                f"init failed: {type(exc).__name__}: {exc}", stage="init", original=exc
            ) from exc
        self._renderer_ready = True

    def _dispose_renderer(self) -> None:
        if not self._renderer_ready:
            return
        self._renderer_ready = False
        try:
            self._renderer.dispose()
        except Exception:
            logger.warning("failed to dispose preview renderer", exc_info=True)

    def _present(self, frame: int, image: RawFrame) -> None:
        if self._on_present is None:
            return
        try:
            self._on_present(frame, image)
        except Exception as exc:
            # 表示側の失敗で描画ループを止めない
            logger.warning("present callback failed at frame %d", frame, exc_info=True)
            self._report(exc)

    def _report(self, exc: Exception) -> None:
        if self._on_error is None:
            logger.error("preview render failed: %s", exc)
            return
        try:
            self._on_error(exc)
        except Exception:
            logger.exception("preview error callback failed")


__all__ = ["ErrorCallback", "PresentCallback", "PreviewSession"]
