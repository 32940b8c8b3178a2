# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Test fixtures for panelbackup tests.

Provides a fake project tree, fake dump tools on PATH, test configuration
helpers and a recording progress sink.
"""

import os
import stat
import tempfile
from pathlib import Path
from typing import Callable, Generator, List

import pytest

from panelbackup.config import BackupConfig, DatabaseConfig
from panelbackup.progress import ProgressEvent

FAKE_PG_DUMP = """#!/bin/sh
echo "-- fake pg_dump $*"
echo "-- PGPASSWORD=${PGPASSWORD}"
echo "CREATE TABLE users (id integer primary key);"
"""

FAILING_DUMP = """#!/bin/sh
echo "connection refused" >&2
exit 1
"""


class RecordingSink:
    """Progress sink that keeps every event in memory."""

    def __init__(self):
        self.events: List[ProgressEvent] = []

    async def publish(self, event: ProgressEvent) -> None:
        self.events.append(event)

    @property
    def progress_values(self) -> List[int]:
        return [e.progress for e in self.events]

    @property
    def last(self) -> ProgressEvent:
        return self.events[-1]


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for tests."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture
def install_tool(temp_dir: Path, monkeypatch) -> Callable[[str, str], Path]:
    """
    Install an executable shell script on PATH.

    Returns a function (name, body) -> script path. The fake bin directory
    is put in front of the real PATH so /bin utilities stay reachable.
    """
    bin_dir = temp_dir / "bin"
    bin_dir.mkdir()
    monkeypatch.setenv("PATH", f"{bin_dir}{os.pathsep}{os.environ.get('PATH', '')}")

    def install(name: str, body: str) -> Path:
        script = bin_dir / name
        script.write_text(body)
        script.chmod(script.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
        return script

    return install


@pytest.fixture
def fake_pg_dump(install_tool) -> Path:
    """A pg_dump that prints a tiny SQL file."""
    return install_tool("pg_dump", FAKE_PG_DUMP)


@pytest.fixture
def project_root(temp_dir: Path) -> Path:
    """
    Create a small admin panel checkout.

    project/
        backend/   src/app.py, package.json, node_modules/, app.log, .env
        frontend/  src/index.js, build/, debug.log
    """
    root = temp_dir / "project"

    backend = root / "backend"
    (backend / "src").mkdir(parents=True)
    (backend / "src" / "app.py").write_text("print('panel')\n")
    (backend / "package.json").write_text('{"name": "panel-backend"}\n')
    (backend / "node_modules" / "express").mkdir(parents=True)
    (backend / "node_modules" / "express" / "index.js").write_text("module.exports = {}\n")
    (backend / "app.log").write_text("started\n")
    (backend / ".env").write_text("DB_PASS=secret\n")

    frontend = root / "frontend"
    (frontend / "src").mkdir(parents=True)
    (frontend / "src" / "index.js").write_text("console.log('panel')\n")
    (frontend / "build").mkdir()
    (frontend / "build" / "bundle.js").write_text("/* built */\n")
    (frontend / "debug.log").write_text("debug\n")

    return root


@pytest.fixture
def test_config(temp_dir: Path, project_root: Path) -> BackupConfig:
    """Backup config pointing at the fake project and a temp archive root."""
    return BackupConfig(
        database=DatabaseConfig(
            dialect="postgres",
            database="panel",
            host="localhost",
            username="panel",
            password="secret",
        ),
        archive_root=temp_dir / "backups",
        project_root=project_root,
        dump_timeout_seconds=30,
    )


@pytest.fixture
def failing_pg_dump(install_tool) -> Path:
    """A pg_dump that writes to stderr and exits 1."""
    return install_tool("pg_dump", FAILING_DUMP)


@pytest.fixture
def failing_mysqldump(install_tool) -> Path:
    return install_tool("mysqldump", FAILING_DUMP)
