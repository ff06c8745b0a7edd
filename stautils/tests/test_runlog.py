########## Run Log Tests ##########
# Component-tagged lines, log location, and tail trimming.

from __future__ import annotations

from datetime import datetime

from stautils.core import config
from stautils.core.backlinks import JournalBacklinks
from stautils.core.runlog import format_run_line, log_run_event, run_log_path
from stautils.demo.stautils_demo import build_demo_world


def test_lines_carry_the_component() -> None:
    line = format_run_line("links synced", "journal-backlinks", datetime(2364, 3, 15, 9, 30, 5, 123))
    assert line == "[2364-03-15T09:30:05] journal-backlinks | links synced"


def test_log_lands_in_configured_directory(run_log_dir) -> None:
    """Sync activity is written under LOG_TEXT_DIR, tagged by component."""

    # 1 Run a sync against the seed world.                                    # steps
    JournalBacklinks(build_demo_world()).sync()
    # 2 The file sits in the redirected directory.                            # steps
    assert run_log_path() == run_log_dir / config.LOG_TEXT_FILENAME
    lines = run_log_path().read_text(encoding="utf-8").splitlines()
    assert any(line.endswith("journal-backlinks | links synced") for line in lines)


def test_log_keeps_newest_lines(monkeypatch) -> None:
    monkeypatch.setattr(config, "LOG_TEXT_MAX_LINES", 3)
    for index in range(5):
        log_run_event(f"event {index}")
    lines = run_log_path().read_text(encoding="utf-8").splitlines()
    assert len(lines) == 3
    assert lines[0].endswith("stautils | event 2")
    assert lines[-1].endswith("stautils | event 4")


def test_disabled_log_writes_nothing(monkeypatch) -> None:
    monkeypatch.setattr(config, "LOG_TEXT_ENABLED", False)
    log_run_event("quiet")
    assert not run_log_path().exists()
