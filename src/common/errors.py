"""
どこで: `common.errors`。
何を: コンパイル/検証/実行時/環境/出力プリセットなどの失敗を表す例外階層を定義する。
なぜ: どの段階で何が失敗したかを `code` と `details` で機械判読可能に伝えるため。

方針:
- すべて `MarkreelError` を基底とし、`code`/`message`/`details`/`suggestion` を持つ。
- コンパイル失敗は例外送出ではなく `CompileResult.error` として返される（呼び出し側が判断）。
- 実行時失敗（テンプレートの `render()` 例外）はフレーム文脈付きで即時失敗とする。
"""

from __future__ import annotations

from typing import Any, Literal, Mapping, Optional, Sequence

CompilePhase = Literal["bundle", "evaluate", "contract"]


class MarkreelError(Exception):
    """プロジェクト共通の例外基底。"""

    code: str = "MARKREEL_ERROR"

    def __init__(
        self,
        message: str,
        *,
        details: Optional[Mapping[str, Any]] = None,
        suggestion: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.details: dict[str, Any] = dict(details) if details else {}
        self.suggestion = suggestion

    def to_dict(self) -> dict[str, Any]:
        """JSON 化しやすい辞書表現を返す。"""
        out: dict[str, Any] = {"code": self.code, "message": self.message}
        if self.details:
            out["details"] = dict(self.details)
        if self.suggestion:
            out["suggestion"] = self.suggestion
        return out


class CompileError(MarkreelError):
    """テンプレートのソースを実行可能な Template にできなかった。

    `phase`:
    - "bundle": 構文解析/コード生成の失敗（`SyntaxError`）
    - "evaluate": モジュール評価中の例外（禁止 import を含む）
    - "contract": 評価は成功したが `render` 等の契約を満たさない
    """

    code = "COMPILE_ERROR"

    def __init__(
        self,
        message: str,
        *,
        phase: CompilePhase,
        line: Optional[int] = None,
        original: Optional[BaseException] = None,
        suggestion: Optional[str] = None,
    ) -> None:
        details: dict[str, Any] = {"phase": phase}
        if line is not None:
            details["line"] = line
        super().__init__(message, details=details, suggestion=suggestion)
        self.phase = phase
        self.line = line
        self.original = original


class ValidationError(MarkreelError):
    """テンプレートの形が不正（render が文字列を返さない等）。"""

    code = "VALIDATION_ERROR"


class TemplateStructureError(ValidationError):
    """静的解析で既定エクスポートが見つからない/認識できない。"""

    code = "TEMPLATE_STRUCTURE_ERROR"


class TemplateRuntimeError(MarkreelError):
    """`render(ctx)` 中の例外をフレーム番号・時間文脈・データ抜粋付きでラップする。"""

    code = "TEMPLATE_RUNTIME_ERROR"

    def __init__(
        self,
        frame: int,
        time_context: Mapping[str, float],
        original: BaseException,
        *,
        data_snapshot: Any = None,
    ) -> None:
        seconds = float(time_context.get("scene_time_seconds", 0.0))
        progress = float(time_context.get("scene_progress", 0.0))
        message = (
            f"Template error at frame {frame} ({seconds:.3f}s, {progress * 100:.1f}% progress): "
            f"{_describe(original)}"
        )
        super().__init__(
            message,
            details={
                "frame": frame,
                "time_context": dict(time_context),
                "data_snapshot": data_snapshot,
            },
            suggestion="Check the render function for errors at this point in the animation",
        )
        self.frame = frame
        self.time_context = dict(time_context)
        self.data_snapshot = data_snapshot
        self.original = original

    @property
    def scene_progress(self) -> float:
        return float(self.time_context.get("scene_progress", 0.0))


class RenderError(MarkreelError):
    """レンダラ/エンコーダアダプタ側の失敗（キャプチャ/エンコード/確定）。"""

    code = "RENDER_ERROR"

    def __init__(
        self,
        message: str,
        *,
        stage: Literal["init", "capture", "encode", "finalize"],
        frame: Optional[int] = None,
        original: Optional[BaseException] = None,
    ) -> None:
        details: dict[str, Any] = {"stage": stage}
        if frame is not None:
            details["frame"] = frame
        super().__init__(message, details=details)
        self.stage = stage
        self.frame = frame
        self.original = original


class RenderEnvironmentError(MarkreelError):
    """ヘッドレスブラウザ/ffmpeg/コーデック等の実行環境が要件を満たさない。"""

    code = "ENVIRONMENT_ERROR"


class RenderPlanError(MarkreelError):
    """レンダープランを構築できない（コンパイル失敗やフレーム数 0 など）。"""

    code = "RENDER_PLAN_ERROR"


class UnknownPresetError(MarkreelError):
    """名前付き出力プリセットが存在しない。"""

    code = "UNKNOWN_PRESET"

    def __init__(self, name: str, available: Sequence[str]) -> None:
        names = ", ".join(available) if available else "(none)"
        super().__init__(
            f'Unknown preset "{name}". Available presets: {names}',
            details={"preset": name, "available": list(available)},
        )
        self.name = name
        self.available = list(available)


class PlayerNotReadyError(MarkreelError):
    """テンプレート未ロードのプレイヤー操作。"""

    code = "PLAYER_NOT_READY"

    def __init__(self, operation: str) -> None:
        super().__init__(
            f"Player not ready: cannot {operation} before a template is loaded",
            details={"operation": operation},
            suggestion="Call player.load(...) and check the result first",
        )
        self.operation = operation


def _describe(exc: BaseException) -> str:
    text = str(exc)
    return text if text else type(exc).__name__


__all__ = [
    "CompileError",
    "CompilePhase",
    "MarkreelError",
    "PlayerNotReadyError",
    "RenderEnvironmentError",
    "RenderError",
    "RenderPlanError",
    "TemplateRuntimeError",
    "TemplateStructureError",
    "UnknownPresetError",
    "ValidationError",
]
