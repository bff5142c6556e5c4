"""
Pytest configuration file.

Ensures the repo root is on sys.path so that 'import flatfile...' and
'import actions...' work without installing the package.
"""
import sys
from pathlib import Path

import pytest

# Add the repo root to sys.path
repo_root = Path(__file__).parent.parent
if str(repo_root) not in sys.path:
    sys.path.insert(0, str(repo_root))

from flatfile.config.settings import reset_settings


@pytest.fixture(autouse=True)
def fresh_settings(monkeypatch):
    """Give every test settings built from a clean FLATFILE_* environment."""
    for name in [
        "FLATFILE_DELIMITER",
        "FLATFILE_NA",
        "FLATFILE_GUESS_MAX",
        "FLATFILE_ENCODING",
        "FLATFILE_TRIM_WS",
        "FLATFILE_OUTPUT_DELIMITER",
        "FLATFILE_OUTPUT_NA",
        "FLATFILE_LOG_LEVEL",
    ]:
        monkeypatch.delenv(name, raising=False)
    reset_settings()
    yield
    reset_settings()
