"""
どこで: `util.paths`。
何を: 動画保存先ディレクトリの生成と、衝突しない出力ファイル名の解決を提供する。
なぜ: エクスポートから簡潔に保存先を扱え、並行呼び出しでも安全に作成できるようにするため。
"""

from __future__ import annotations

from datetime import datetime
from pathlib import Path
from typing import Optional

from .utils import _find_project_root


def ensure_video_dir() -> Path:
    """動画出力先 `data/video/` を作成して返す。

    - プロジェクトルート直下に `data/video` を作成する。
    - 親 `data/` も同時に作成される。
    - 既存の場合もそのまま Path を返す。
    - 並行呼び出しに対して `exist_ok=True` で安全。
    """
    root = _find_project_root(Path(__file__).parent)
    out = root / "data" / "video"
    out.mkdir(parents=True, exist_ok=True)
    return out


def unique_path(path: Path) -> Path:
    """既存ファイルと衝突しないよう `-1`, `-2` ... を付けたパスを返す。"""
    if not path.exists():
        return path
    i = 1
    while True:
        cand = path.parent / f"{path.stem}-{i}{path.suffix}"
        if not cand.exists():
            return cand
        i += 1


def default_video_path(
    width: int,
    height: int,
    fps: float,
    *,
    container: str = "mp4",
    name_prefix: Optional[str] = None,
    out_dir: Optional[Path] = None,
) -> Path:
    """`<prefix>_<W>x<H>_<fps>fps_<timestamp>.<container>` 形式の一意なパスを返す。"""
    directory = out_dir if out_dir is not None else ensure_video_dir()
    dims = f"{int(width)}x{int(height)}_{fps:g}fps"
    ts = datetime.now().strftime("%y%m%d_%H%M%S")
    if name_prefix and name_prefix.strip():
        base = f"{name_prefix.strip()}_{dims}_{ts}"
    else:
        base = f"{dims}_{ts}"
    return unique_path(directory / f"{base}.{container}")


__all__ = ["default_video_path", "ensure_video_dir", "unique_path"]
