"""Tests for the test runner's pytest command line."""

import argparse
import importlib.util
from pathlib import Path

import pytest

_path = Path(__file__).resolve().parent.parent / "run_tests.py"
_spec = importlib.util.spec_from_file_location("run_tests", _path)
run_tests = importlib.util.module_from_spec(_spec)
_spec.loader.exec_module(run_tests)


def _args(**overrides):
    values = dict(unit=False, integration=False, keras=False, fast=False,
                  file=None, keyword=None, verbose=False, coverage=False)
    values.update(overrides)
    return argparse.Namespace(**values)


class TestMarkerExpression:
    @pytest.mark.parametrize("flags, expected", [
        ({}, ""),
        ({"fast": True}, "not slow"),
        ({"unit": True}, "unit"),
        ({"unit": True, "integration": True}, "unit or integration"),
        ({"integration": True, "fast": True}, "(integration) and not slow"),
        ({"keras": True}, "slow"),
    ])
    def test_flags_combine(self, flags, expected):
        assert run_tests.marker_expression(_args(**flags)) == expected


class TestBuildCommand:
    def test_defaults_run_whole_suite(self):
        cmd = run_tests.build_command(_args())

        assert "-m" not in cmd
        assert str(run_tests.ROOT / "tests") in cmd

    def test_files_and_keyword(self):
        cmd = run_tests.build_command(_args(file=["test_votes.py", "test_labels.py"], keyword="reversed"))

        assert cmd[cmd.index("-k") + 1] == "reversed"
        assert str(run_tests.ROOT / "tests" / "test_votes.py") in cmd
        assert str(run_tests.ROOT / "tests" / "test_labels.py") in cmd
        assert str(run_tests.ROOT / "tests") not in cmd

    def test_fast_passes_single_marker_option(self):
        cmd = run_tests.build_command(_args(unit=True, fast=True, coverage=True))

        assert cmd.count("-m") == 2  # python -m pytest, then the marker expression
        assert cmd[cmd.index("-m", 2) + 1] == "(unit) and not slow"
        assert "--cov=tarot_scanner" in cmd
