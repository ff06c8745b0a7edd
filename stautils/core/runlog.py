########## Run Log ##########
# Plain-text trail of session and backlink activity, one line per event.

from __future__ import annotations

from datetime import datetime
from pathlib import Path

from . import config

LOG_COMPONENT_DEFAULT: str = "stautils"


def run_log_path() -> Path:
    """Resolve the log file; relative directories hang off the project root."""

    log_dir = Path(config.LOG_TEXT_DIR)
    if not log_dir.is_absolute():
        log_dir = Path(__file__).resolve().parents[2] / log_dir
    return log_dir / config.LOG_TEXT_FILENAME


def format_run_line(message: str, component: str, timestamp: datetime) -> str:
    return f"[{timestamp.isoformat(timespec='seconds')}] {component} | {message}"


def log_run_event(message: str, component: str = LOG_COMPONENT_DEFAULT) -> None:
    """Append one line tagged with the component that produced it."""

    if not config.LOG_TEXT_ENABLED:
        return
    # 1 Make sure the directory exists, then append.                          # steps
    log_path = run_log_path()
    log_path.parent.mkdir(parents=True, exist_ok=True)
    with log_path.open("a", encoding="utf-8") as handle:
        handle.write(format_run_line(message, component, datetime.utcnow()) + "\n")
    # 2 Keep only the newest LOG_TEXT_MAX_LINES lines.                        # steps
    _keep_tail(log_path, config.LOG_TEXT_MAX_LINES)


def _keep_tail(log_path: Path, max_lines: int) -> None:
    if max_lines <= 0:
        return
    lines = log_path.read_text(encoding="utf-8").splitlines()
    if len(lines) > max_lines:
        log_path.write_text("\n".join(lines[-max_lines:]) + "\n", encoding="utf-8")
