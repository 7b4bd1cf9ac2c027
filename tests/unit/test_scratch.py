"""Tests for scoped scratch resources."""

from __future__ import annotations

from pathlib import Path

import pytest

from sitecast.core.scratch import remove_path, scratch_directory, scratch_name


class TestScratchName:
    def test_names_are_unique(self):
        names = {scratch_name("github", "acme", "site", suffix=".tar.gz") for _ in range(50)}
        assert len(names) == 50

    def test_unsafe_characters_replaced(self):
        name = scratch_name("acme corp", "site/../x")
        assert "/" not in name and " " not in name


class TestScratchDirectory:
    def test_removed_on_success(self, tmp_dir: Path):
        with scratch_directory(tmp_dir, "acme", "site") as path:
            path.mkdir()
            (path / "index.html").write_text("hi")
        assert not path.exists()

    def test_removed_on_error(self, tmp_dir: Path):
        with pytest.raises(RuntimeError):
            with scratch_directory(tmp_dir, "acme") as path:
                path.mkdir()
                raise RuntimeError("boom")
        assert not path.exists()

    def test_not_created_until_used(self, tmp_dir: Path):
        with scratch_directory(tmp_dir, "acme") as path:
            assert not path.exists()
            assert path.parent == tmp_dir


class TestRemovePath:
    def test_removes_file_and_tree(self, tmp_dir: Path):
        f = tmp_dir / "a.tar.gz"
        f.write_bytes(b"x")
        d = tmp_dir / "tree"
        (d / "sub").mkdir(parents=True)
        assert remove_path(f) and remove_path(d)
        assert not f.exists() and not d.exists()

    def test_missing_path_is_fine(self, tmp_dir: Path):
        assert remove_path(tmp_dir / "missing") is True
