"""
Shared pytest fixtures for streamaqp tests.
"""

import pytest

from streamaqp.synth import COLUMNS, write_csv


@pytest.fixture
def salary_csv(tmp_path):
    """1,000 synthetic rows with salary uniform in [30000, 80000]."""
    return write_csv(tmp_path / "sample.csv", 1000, seed=7)


@pytest.fixture
def make_csv(tmp_path):
    """Factory writing a synthetic CSV with the given row count."""

    def _make(rows, seed=0, name=None, cities=None):
        path = tmp_path / (name or f"rows_{rows}_{seed}.csv")
        return write_csv(path, rows, seed=seed, cities=cities)

    return _make


@pytest.fixture
def header_line():
    return ",".join(COLUMNS)


@pytest.fixture
def ordered_lines():
    """Factory for data lines whose salary equals the row id, in order."""

    def _lines(count):
        return [f"{i},n{i},30,Delhi,{i}" for i in range(1, count + 1)]

    return _lines
