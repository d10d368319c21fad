"""
Tests that each public package imports cleanly in a fresh interpreter.
"""
import subprocess
import sys
from pathlib import Path

import pytest


PROJECT_ROOT = Path(__file__).resolve().parents[1]

PUBLIC_MODULES = [
    "tb_engine",
    "tb_engine.engine",
    "tb_engine.engine.orchestrator",
    "tb_engine.schemas.engine",
    "tb_engine.services.classifiers",
    "tb_engine.services.classifiers.rules",
    "tb_engine.services.journal",
    "tb_engine.services.validators",
]


class TestImports:
    """Tests for import order independence."""

    @pytest.mark.parametrize("module", PUBLIC_MODULES)
    def test_fresh_import(self, module):
        """Test the module imports first in a new process."""
        completed = subprocess.run(
            [sys.executable, "-c", f"import {module}"],
            cwd=PROJECT_ROOT,
            capture_output=True,
            text=True,
        )
        assert completed.returncode == 0, completed.stderr
