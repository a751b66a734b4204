"""
どこで: `api.player`（対話プレビュー用の高水準プレイヤー）。
何を: テンプレートを読み込み、ストア/プレビューセッション/再生コントローラを結線して再生・シーク・
      チェックポイント移動・イベント通知を提供する。
なぜ: ホスト（GUI/ノートブック/テスト）が `tick()` を呼ぶだけで、書き出しと同じ式のフレームを
      プレビューできるようにするため。

使い方:
    from api import Player
    from engine.export import PlaywrightRenderer

    player = Player(PlaywrightRenderer(), format="vertical", playback_mode="loop")
    player.on("frame", lambda frame, image: show(image))
    result = player.load(source)
    if result.ok:
        player.play()
        while running:
            player.tick()

注意:
- `load()` 前の操作は `PlayerNotReadyError`。
- `checkpoint` イベントはチェックポイント移動（go_to_*）時に発火する（再生中の通過では発火しない）。
"""

from __future__ import annotations

import logging
import time
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, Literal, Mapping, Optional, Union

from common.errors import CompileError, MarkreelError, PlayerNotReadyError
from engine.compiler import compile_template, validate_template
from engine.core.checkpoints import Checkpoint, CheckpointResolver, Marker
from engine.core.constants import (
    DEFAULT_DURATION_SECONDS,
    DEFAULT_FPS,
    DEFAULT_HEIGHT,
    DEFAULT_WIDTH,
    FORMAT_ALIASES,
)
from engine.core.frame_clock import FrameClock
from engine.core.template import Template
from engine.core.timing import frame_for_time
from engine.render.types import FrameRenderer, RawFrame
from engine.runtime import (
    PlaybackController,
    PlayerConfig,
    PlayerState,
    PlayerStore,
    PreviewSession,
    StoreCallbacks,
    frame_from_position,
)

logger = logging.getLogger(__name__)

PlaybackMode = Literal["once", "loop", "ping-pong"]
PlayerFormat = Union[str, tuple[int, int], Mapping[str, int]]
PLAYER_EVENTS = ("frame", "play", "pause", "ended", "ready", "error", "checkpoint")


@dataclass(frozen=True)
class LoadResult:
    ok: bool
    error: Optional[MarkreelError] = None
    total_frames: int = 0
    width: int = 0
    height: int = 0
    checkpoints: tuple[Checkpoint, ...] = field(default_factory=tuple)


def resolve_format(value: PlayerFormat) -> tuple[int, int]:
    """`"vertical"|"horizontal"|"square"`、`(w, h)`、`{"width", "height"}` を寸法にする。"""
    if isinstance(value, str):
        try:
            return FORMAT_ALIASES[value]
        except KeyError:
            available = ", ".join(FORMAT_ALIASES)
            raise ValueError(f"Unknown format {value!r}. Available formats: {available}") from None
    if isinstance(value, Mapping):
        width, height = value["width"], value["height"]
    else:
        width, height = value
    if int(width) <= 0 or int(height) <= 0:
        raise ValueError(f"format dimensions must be positive, got {width}x{height}")
    return int(width), int(height)


class Player:
    """テンプレートのプレビュー再生器。"""

    def __init__(
        self,
        renderer: FrameRenderer,
        *,
        format: Optional[PlayerFormat] = None,
        playback_mode: PlaybackMode = "once",
        max_cache_frames: Optional[int] = None,
        inline: bool = True,
        clock: Callable[[], float] = time.perf_counter,
    ) -> None:
        if playback_mode not in ("once", "loop", "ping-pong"):
            raise ValueError(f"playback_mode must be once|loop|ping-pong, got {playback_mode!r}")
        self._renderer = renderer
        self._format = resolve_format(format) if format is not None else None
        self._mode: PlaybackMode = playback_mode
        self._max_cache_frames = max_cache_frames
        self._inline = inline
        self._clock_fn = clock
        self._handlers: dict[str, list[Callable[..., Any]]] = defaultdict(list)
        self._direction = 1
        self._last_image: Optional[RawFrame] = None

        self._store: Optional[PlayerStore] = None
        self._session: Optional[PreviewSession] = None
        self._controller: Optional[PlaybackController] = None
        self._frame_clock: Optional[FrameClock] = None
        self._resolver: Optional[CheckpointResolver] = None

    # ---- events ----
    def on(self, event: str, handler: Callable[..., Any]) -> Callable[[], None]:
        """イベントハンドラを登録し、解除関数を返す。"""
        if event not in PLAYER_EVENTS:
            raise ValueError(f"Unknown event {event!r}. Available events: {', '.join(PLAYER_EVENTS)}")
        self._handlers[event].append(handler)
        return lambda: self.off(event, handler)

    def off(self, event: str, handler: Callable[..., Any]) -> None:
        handlers = self._handlers.get(event)
        if handlers and handler in handlers:
            handlers.remove(handler)

    def _emit(self, event: str, *args: Any) -> None:
        for handler in list(self._handlers.get(event, ())):
            handler(*args)

    # ---- state ----
    @property
    def is_ready(self) -> bool:
        return self._store is not None and self._store.state.is_ready

    @property
    def state(self) -> PlayerState:
        return self._require("read state").state

    @property
    def current_image(self) -> Optional[RawFrame]:
        return self._last_image

    @property
    def playback_mode(self) -> PlaybackMode:
        return self._mode

    def _require(self, operation: str) -> PlayerStore:
        if self._store is None or not self._store.state.is_ready:
            raise PlayerNotReadyError(operation)
        return self._store

    # ---- loading ----
    def load(
        self,
        template: Union[Template, str],
        *,
        markers: Optional[Iterable[Union[Marker, Mapping[str, Any]]]] = None,
        data: Optional[Mapping[str, Any]] = None,
    ) -> LoadResult:
        """テンプレート（またはソース文字列）を読み込み、フレーム 0 を描画する。

        失敗は例外にせず `LoadResult.error` と `error` イベントで返す。
        """
        if isinstance(template, str):
            compiled = compile_template(template)
            if compiled.error is not None:
                return self._load_failed(compiled.error)
            if compiled.template is None:
                return self._load_failed(
                    CompileError("Compiler produced no template", phase="contract")
                )
            template = compiled.template
        error = validate_template(template)
        if error is not None:
            return self._load_failed(error)

        self._teardown()
        cfg = template.config
        fps = cfg.fps or DEFAULT_FPS
        duration = cfg.duration_seconds or DEFAULT_DURATION_SECONDS
        width, height = self._format or (cfg.width or DEFAULT_WIDTH, cfg.height or DEFAULT_HEIGHT)
        player_config = PlayerConfig(fps=fps, duration_seconds=duration)
        try:
            resolver = CheckpointResolver(
                markers or (), total_frames=player_config.total_frames, fps=fps
            )
        except (KeyError, TypeError, ValueError) as exc:
            return self._load_failed(
                MarkreelError(f"Invalid markers: {exc}", details={"markers": repr(markers)})
            )

        store = PlayerStore(
            player_config,
            StoreCallbacks(
                on_play=lambda: self._emit("play"),
                on_pause=lambda: self._emit("pause"),
                on_frame_change=self._on_frame_change,
                on_checkpoint=lambda cp: self._emit("checkpoint", cp),
            ),
            max_cache_size=self._max_cache_frames,
            checkpoint_resolver=resolver,
        )
        self._resolver = resolver
        self._store = store
        self._session = PreviewSession(
            template,
            self._renderer,
            store,
            width=width,
            height=height,
            data=data,
            fonts=cfg.fonts,
            inline_css=cfg.inline_css,
            stylesheets=cfg.stylesheets,
            on_present=self._on_present,
            on_error=lambda exc: self._emit("error", exc),
            inline=self._inline,
        )
        self._controller = PlaybackController(
            store, on_frame=store.set_frame, on_end=self._on_end, clock=self._clock_fn
        )
        self._frame_clock = FrameClock([self._controller], clock=self._clock_fn)
        self._direction = 1
        store.set_ready(True)
        logger.info(
            "template loaded: %dx%d, %d frames @ %gfps", width, height, player_config.total_frames, fps
        )
        self._emit("ready")
        self._session.request_frame(0)
        return LoadResult(
            ok=True,
            total_frames=player_config.total_frames,
            width=width,
            height=height,
            checkpoints=tuple(resolver.all()),
        )

    def _load_failed(self, error: MarkreelError) -> LoadResult:
        logger.warning("template load failed: %s", error)
        self._emit("error", error)
        return LoadResult(ok=False, error=error)

    # ---- playback ----
    def play(self) -> None:
        store = self._require("play")
        store.play()
        if store.state.is_playing:
            self._start_controller()

    def pause(self) -> None:
        store = self._require("pause")
        assert self._controller is not None
        self._controller.pause()
        store.pause()

    def stop(self) -> None:
        """停止して先頭へ戻す。"""
        store = self._require("stop")
        assert self._controller is not None
        self._controller.pause()
        if store.state.is_playing:
            store.pause()
        self._direction = 1
        store.set_frame(0)

    def tick(self, dt: Optional[float] = None) -> None:
        """ホストループから呼ぶ。再生中なら経過時間ぶんフレームを進める。"""
        self._require("tick")
        assert self._frame_clock is not None
        self._frame_clock.tick(dt)

    def _start_controller(self) -> None:
        assert self._store is not None and self._controller is not None
        assert self._frame_clock is not None
        self._frame_clock.reset()
        self._controller.play(from_frame=self._store.state.current_frame, direction=self._direction)

    def _on_end(self) -> None:
        assert self._store is not None
        if self._mode == "loop":
            self._store.set_frame(0)
            self._start_controller()
        elif self._mode == "ping-pong":
            self._direction = -self._direction
            self._start_controller()
        else:
            self._store.pause()
            self._emit("ended")

    # ---- seeking ----
    def seek_to_frame(self, frame: int) -> None:
        store = self._require("seek")
        store.set_frame(frame)
        if store.state.is_playing:
            self._start_controller()

    def seek_to_progress(self, progress: float) -> None:
        store = self._require("seek")
        self.seek_to_frame(frame_from_position(progress, store.state.total_frames))

    def seek_to_time_seconds(self, seconds: float) -> None:
        store = self._require("seek")
        self.seek_to_frame(frame_for_time(seconds, store.state.fps))

    def set_format(self, format: PlayerFormat) -> None:
        """出力寸法を変更して現在フレームを描き直す（読込前なら次回の load で使う）。"""
        self._format = resolve_format(format)
        if self._session is None or self._store is None:
            return
        self._session.set_size(*self._format)
        self._session.request_frame(self._store.state.current_frame)

    # ---- checkpoints ----
    def get_checkpoints(self) -> list[Checkpoint]:
        self._require("list checkpoints")
        assert self._resolver is not None
        return self._resolver.all()

    def add_checkpoint(
        self,
        checkpoint_id: str,
        frame: int,
        *,
        label: Optional[str] = None,
        metadata: Optional[Mapping[str, Any]] = None,
    ) -> Checkpoint:
        self._require("add checkpoint")
        assert self._resolver is not None
        return self._resolver.add(checkpoint_id, frame, label=label, metadata=metadata)

    def remove_checkpoint(self, checkpoint_id: str) -> bool:
        self._require("remove checkpoint")
        assert self._resolver is not None
        return self._resolver.remove(checkpoint_id)

    def current_checkpoint(self) -> Optional[Checkpoint]:
        return self._require("read checkpoint").current_checkpoint()

    def go_to_checkpoint(self, checkpoint_id: str) -> Optional[Checkpoint]:
        return self._after_jump(self._require("go to checkpoint").go_to_checkpoint(checkpoint_id))

    def go_to_next_checkpoint(self) -> Optional[Checkpoint]:
        return self._after_jump(self._require("go to checkpoint").go_to_next_checkpoint())

    def go_to_previous_checkpoint(self) -> Optional[Checkpoint]:
        return self._after_jump(self._require("go to checkpoint").go_to_previous_checkpoint())

    def _after_jump(self, cp: Optional[Checkpoint]) -> Optional[Checkpoint]:
        if cp is not None and self._store is not None and self._store.state.is_playing:
            self._start_controller()
        return cp

    # ---- wiring ----
    def _on_frame_change(self, frame: int) -> None:
        if self._session is not None:
            self._session.request_frame(frame)

    def _on_present(self, frame: int, image: RawFrame) -> None:
        self._last_image = image
        self._emit("frame", frame, image)

    def wait_idle(self, timeout: Optional[float] = None) -> bool:
        """非インライン描画の完了を待つ。"""
        if self._session is None:
            return True
        return self._session.wait_idle(timeout)

    def _teardown(self) -> None:
        if self._controller is not None:
            self._controller.destroy()
        if self._session is not None:
            self._session.close()
        self._controller = None
        self._session = None
        self._frame_clock = None
        self._store = None
        self._resolver = None
        self._last_image = None

    def destroy(self) -> None:
        """セッションとレンダラを破棄し、全ハンドラを解除する。"""
        self._teardown()
        self._handlers.clear()


__all__ = ["LoadResult", "PLAYER_EVENTS", "Player", "PlaybackMode", "resolve_format"]
