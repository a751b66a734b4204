from __future__ import annotations

import contextlib
import logging
from typing import Iterator

import pytest

from common.logging import setup_default_logging


@contextlib.contextmanager
def _bare_root() -> Iterator[logging.Logger]:
    # pytest は各フェーズでルートへハンドラを足すため、テスト本体の中で一時的に外す
    root = logging.getLogger()
    noisy = logging.getLogger("asyncio")
    saved, level, noisy_level = root.handlers[:], root.level, noisy.level
    for h in saved:
        root.removeHandler(h)
    try:
        yield root
    finally:
        for h in root.handlers[:]:
            root.removeHandler(h)
            h.close()
        for h in saved:
            root.addHandler(h)
        root.setLevel(level)
        noisy.setLevel(noisy_level)


def test_setup_applies_level_once(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("MKR_LOG_LEVEL", "debug")
    with _bare_root() as root:
        setup_default_logging()
        assert root.level == logging.DEBUG
        assert len(root.handlers) == 1
        # 2 回目は no-op
        setup_default_logging("ERROR")
        assert root.level == logging.DEBUG
        assert len(root.handlers) == 1


def test_explicit_level_and_noisy_loggers() -> None:
    with _bare_root() as root:
        setup_default_logging(logging.INFO)
        assert root.level == logging.INFO
        assert logging.getLogger("asyncio").level == logging.WARNING
