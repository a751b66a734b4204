from __future__ import annotations

import pytest

from common.errors import (
    CompileError,
    MarkreelError,
    PlayerNotReadyError,
    RenderError,
    TemplateRuntimeError,
    TemplateStructureError,
    UnknownPresetError,
    ValidationError,
)


@pytest.mark.smoke
def test_all_errors_share_base_and_codes() -> None:
    errors = [
        CompileError("x", phase="bundle"),
        ValidationError("x"),
        TemplateStructureError("x"),
        RenderError("x", stage="capture", frame=3),
        UnknownPresetError("a", ["b"]),
        PlayerNotReadyError("play"),
    ]
    for err in errors:
        assert isinstance(err, MarkreelError)
        assert err.to_dict()["code"] == err.code
    assert isinstance(TemplateStructureError("x"), ValidationError)


def test_template_runtime_error_message_includes_frame_time_and_progress() -> None:
    ctx = {"scene_frame": 12, "scene_time_seconds": 0.4, "scene_progress": 0.25}
    err = TemplateRuntimeError(12, ctx, ValueError("bad value"), data_snapshot={"k": 1})
    assert "frame 12" in str(err)
    assert "0.400s" in str(err)
    assert "25.0% progress" in str(err)
    assert "bad value" in str(err)
    assert err.scene_progress == 0.25
    assert err.to_dict()["details"]["data_snapshot"] == {"k": 1}


def test_unknown_preset_lists_names() -> None:
    err = UnknownPresetError("tiktok", ["story", "square"])
    assert str(err) == 'Unknown preset "tiktok". Available presets: story, square'


def test_compile_error_details() -> None:
    err = CompileError("oops", phase="evaluate", line=4)
    assert err.to_dict()["details"] == {"phase": "evaluate", "line": 4}
