"""Shared fixtures for job metric files."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Callable

import pytest

JOB_DATA: dict[str, Any] = {
    "flops_any": {
        "unit": {"base": "F/s", "prefix": "G"},
        "scope": "node",
        "timestep": 60,
        "series": [
            {
                "hostname": "e0101",
                "statistics": {"avg": 2.0, "min": 1.5, "max": 2.5},
                "data": [1.5, 2.0, 2.5],
            },
            {"hostname": "e0102", "data": "n/a"},
        ],
    },
    "mem_bw": {
        "unit": {"base": "B/s", "prefix": "G"},
        "series": [
            {"hostname": "e0101", "data": [10, None, 30, 40]},
        ],
    },
}


@pytest.fixture
def write_job(tmp_path: Path) -> Callable[..., Path]:
    """Factory writing raw bytes or a JSON-serializable value to a file."""

    def _write(content: Any, name: str = "job.json") -> Path:
        path = tmp_path / name
        if isinstance(content, bytes):
            path.write_bytes(content)
        else:
            path.write_text(json.dumps(content))
        return path

    return _write


@pytest.fixture
def job_file(write_job: Callable[..., Path]) -> Path:
    """A well-formed job metric file with two metrics and three payloads."""
    return write_job(JOB_DATA)


@pytest.fixture
def job_data() -> dict[str, Any]:
    return JOB_DATA
