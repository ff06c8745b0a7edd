########## Shared Test Fixtures ##########
# Keeps the run log inside each test's temporary directory.

from __future__ import annotations

import pytest

from stautils.core import config


@pytest.fixture(autouse=True)
def run_log_dir(tmp_path, monkeypatch):
    """Redirect text logging away from the repository's logs folder."""

    log_dir = tmp_path / "logs"
    monkeypatch.setattr(config, "LOG_TEXT_DIR", str(log_dir))
    return log_dir
