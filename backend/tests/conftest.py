"""
Pytest configuration and fixtures

No test talks to docker, gitleaks or the network: the fetcher and the
engine are replaced with in-memory fakes (tests/scan_helpers.py), and every
workspace is created under pytest's tmp_path so leaks are visible.
"""
import json
import os
import sys
from pathlib import Path

import pytest

# Add the parent directory to the path so we can import api, core, scanner, ...
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
os.environ.setdefault("GIT_PYTHON_REFRESH", "quiet")

from tests.scan_helpers import AWS_FINDING, GENERIC_KEY_FINDING


@pytest.fixture
def aws_report() -> str:
    return json.dumps([AWS_FINDING])


@pytest.fixture
def mixed_report() -> str:
    return json.dumps([AWS_FINDING, GENERIC_KEY_FINDING])


@pytest.fixture
def workspace_root(tmp_path) -> Path:
    """Parent for per-request workspaces; empty again after every request."""
    root = tmp_path / "workspaces"
    root.mkdir()
    return root
