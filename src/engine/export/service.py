"""
どこで: `engine.export.service`。
何を: 動画エクスポートジョブをバックグラウンドのワーカースレッドで実行し、進捗を問い合わせ可能にする。
なぜ: プレビュー等の呼び出し側をブロックせずに書き出し、複数ジョブは各自のアダプタ組で並行させるため。

注意:
- 実行中ジョブのキャンセルは提供しない（開始したジョブは完了か失敗で終わる）。
- 出力は `.part` に書いてから rename する（失敗時は `.part` を片付ける）。
"""

from __future__ import annotations

import itertools
import logging
import queue
import threading
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Literal, Optional

from common.errors import MarkreelError
from engine.render.executor import execute_render_plan
from engine.render.plan import RenderJob, create_render_plan
from engine.render.types import FrameRenderer, RenderProgress, VideoEncoder
from util.paths import default_video_path

from .registry import create_adapters

logger = logging.getLogger(__name__)

JobState = Literal["pending", "running", "completed", "failed"]
AdapterFactory = Callable[[], "tuple[FrameRenderer, VideoEncoder]"]

_job_counter = itertools.count(1)


@dataclass(frozen=True)
class ExportProgress:
    state: JobState
    frame: int
    total_frames: int
    path: Optional[Path]
    error: Optional[str]


@dataclass
class _Job:
    job_id: str
    job: RenderJob
    output_path: Optional[Path]
    name_prefix: Optional[str] = None
    # 進捗
    frame: int = 0
    total_frames: int = 0
    state: JobState = "pending"
    error: Optional[str] = None
    path: Optional[Path] = None
    done: threading.Event = field(default_factory=threading.Event)


class ExportService:
    """動画エクスポート用のワーカースレッド群＋ジョブ管理。"""

    def __init__(
        self,
        *,
        adapter_factory: AdapterFactory = create_adapters,
        workers: int = 1,
        out_dir: Optional[Path] = None,
    ) -> None:
        self._factory = adapter_factory
        self._out_dir = out_dir
        self._q: "queue.Queue[_Job | None]" = queue.Queue()
        self._lock = threading.Lock()
        self._jobs: dict[str, _Job] = {}
        self._closed = False
        self._threads = [
            threading.Thread(target=self._worker, name=f"VideoExportWorker-{i}", daemon=True)
            for i in range(max(1, int(workers)))
        ]
        for th in self._threads:
            th.start()

    # --- public API ---
    def submit(
        self,
        job: RenderJob,
        output_path: Optional[Path] = None,
        *,
        name_prefix: Optional[str] = None,
    ) -> str:
        """エクスポートジョブを投入し、`job_id` を返す。"""
        if self._closed:
            raise RuntimeError("export service is closed")
        job_id = f"job_{int(time.time() * 1000)}_{next(_job_counter)}"
        entry = _Job(
            job_id=job_id,
            job=job,
            output_path=Path(output_path) if output_path is not None else None,
            name_prefix=name_prefix,
        )
        with self._lock:
            self._jobs[job_id] = entry
        self._q.put(entry)
        return job_id

    def progress(self, job_id: str) -> ExportProgress:
        with self._lock:
            job = self._jobs.get(job_id)
            if job is None:
                return ExportProgress("failed", 0, 0, None, "unknown job")
            return ExportProgress(job.state, job.frame, job.total_frames, job.path, job.error)

    def wait(self, job_id: str, timeout: Optional[float] = None) -> ExportProgress:
        """ジョブの完了（成功/失敗）を待って進捗を返す。タイムアウト時は途中経過。"""
        with self._lock:
            job = self._jobs.get(job_id)
        if job is not None:
            job.done.wait(timeout)
        return self.progress(job_id)

    def close(self, timeout: float = 5.0) -> None:
        """新規投入を止め、キュー済みジョブの消化後にワーカを停止する（多重呼び出しに安全）。"""
        if self._closed:
            return
        self._closed = True
        for _ in self._threads:
            self._q.put(None)
        for th in self._threads:
            th.join(timeout=timeout)

    # --- worker loop ---
    def _worker(self) -> None:
        for job in iter(self._q.get, None):  # None = sentinel
            try:
                self._run_job(job)
            finally:
                job.done.set()

    def _on_progress(self, job: _Job, progress: RenderProgress) -> None:
        with self._lock:
            job.frame = progress.frame + 1
            job.total_frames = progress.total_frames

    def _run_job(self, job: _Job) -> None:
        part_path: Optional[Path] = None
        with self._lock:
            job.state = "running"
        try:
            plan = create_render_plan(job.job)
            with self._lock:
                job.total_frames = plan.total_frames
            final_path = job.output_path or default_video_path(
                plan.width,
                plan.height,
                plan.fps,
                container=plan.encoding.format,
                name_prefix=job.name_prefix,
                out_dir=self._out_dir,
            )
            renderer, encoder = self._factory()
            data = execute_render_plan(
                plan, renderer, encoder, on_progress=lambda p: self._on_progress(job, p)
            )
            final_path.parent.mkdir(parents=True, exist_ok=True)
            part_path = final_path.with_suffix(final_path.suffix + ".part")
            part_path.write_bytes(data)
            part_path.replace(final_path)
            with self._lock:
                job.path = final_path
                job.state = "completed"
            logger.info("export %s completed: %s", job.job_id, final_path)
        except MarkreelError as exc:
            logger.warning("export %s failed: %s", job.job_id, exc)
            self._fail(job, str(exc), part_path)
        except Exception as exc:
            logger.exception("export %s failed unexpectedly", job.job_id)
            self._fail(job, f"{type(exc).__name__}: {exc}", part_path)

    def _fail(self, job: _Job, message: str, part_path: Optional[Path]) -> None:
        if part_path is not None and part_path.exists():
            part_path.unlink()
        with self._lock:
            job.state = "failed"
            job.error = message
            job.path = None


__all__ = ["AdapterFactory", "ExportProgress", "ExportService"]
