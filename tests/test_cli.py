"""Tests for the bucketfs smoke-test CLI."""

from __future__ import annotations

from pathlib import Path
from typing import Any

from bucketfs.backends.filesystem import FilesystemObjectStore
from bucketfs.cli import MARKER, RENAMED_MARKER, create_parser, main
from bucketfs.errors import StorageBackendError


class TestParser:
    """Tests for argument parsing."""

    def test_defaults(self) -> None:
        args = create_parser().parse_args(["my-bucket"])

        assert args.bucket == "my-bucket"
        assert args.backend is None
        assert args.behaviour is None
        assert args.base_dir is None
        assert args.timeout is None


class TestSmoke:
    """End-to-end smoke runs against the filesystem backend."""

    def test_success_exits_zero(self, temp_storage_dir: Path, capsys: Any) -> None:
        code = main(["smoke", "--backend", "filesystem", "--base-dir", str(temp_storage_dir)])

        assert code == 0
        out = capsys.readouterr().out
        assert "statfs: filesystem" in out
        assert f"renamed {MARKER} -> {RENAMED_MARKER}" in out

        store = FilesystemObjectStore("smoke", base_dir=temp_storage_dir)
        assert store.exists(RENAMED_MARKER)
        assert not store.exists(MARKER)

    def test_copy_only_keeps_marker(self, temp_storage_dir: Path) -> None:
        code = main(
            [
                "smoke",
                "--backend",
                "filesystem",
                "--base-dir",
                str(temp_storage_dir),
                "--rename-mode",
                "copy_only",
            ]
        )

        assert code == 0
        store = FilesystemObjectStore("smoke", base_dir=temp_storage_dir)
        assert store.exists(MARKER)
        assert store.exists(RENAMED_MARKER)

    def test_storage_failure_exits_one(
        self, temp_storage_dir: Path, capsys: Any, monkeypatch: Any
    ) -> None:
        def refuse(self: FilesystemObjectStore, key: str, *, if_not_exists: bool = False) -> Any:
            raise StorageBackendError("read-only bucket", bucket=self.bucket, key=key)

        monkeypatch.setattr(FilesystemObjectStore, "open_writer", refuse)

        code = main(["smoke", "--backend", "filesystem", "--base-dir", str(temp_storage_dir)])

        assert code == 1
        assert "read-only bucket" in capsys.readouterr().err

    def test_expired_timeout_exits_one(self, temp_storage_dir: Path) -> None:
        code = main(
            [
                "smoke",
                "--backend",
                "filesystem",
                "--base-dir",
                str(temp_storage_dir),
                "--timeout",
                "0",
            ]
        )

        assert code == 1

    def test_invalid_behaviour_exits_two(self, temp_storage_dir: Path, capsys: Any) -> None:
        code = main(
            [
                "smoke",
                "--backend",
                "filesystem",
                "--base-dir",
                str(temp_storage_dir),
                "--behaviour",
                "sometimes",
            ]
        )

        assert code == 2
        assert "configuration error" in capsys.readouterr().err
