"""Tests for the local tree scanner and differ."""

import hashlib
import os
from pathlib import Path

import pytest

from conftest import etag_of, write_tree
from edgesync import scanner
from edgesync.errors import KeyCollisionError, LocalReadError
from edgesync.filters import build_path_filter
from edgesync.models import ChangedKeySet, ScanReport
from edgesync.scanner import guess_content_type, iter_local_files, scan_changes, store_key


class TestStoreKey:
    def test_windows_separator_is_normalized(self):
        assert store_key("assets\\js\\app.js", sep="\\") == "assets/js/app.js"

    def test_posix_path_unchanged(self):
        assert store_key("assets/js/app.js", sep="/") == "assets/js/app.js"

    def test_backslash_in_posix_name_does_not_collide(self):
        assert store_key("a\\b.txt", sep="/") != store_key("a/b.txt", sep="/")

    def test_key_has_no_leading_slash(self):
        assert store_key("/index.html", sep="/") == "index.html"


def test_content_type_guess_and_fallback():
    assert guess_content_type("index.html") == "text/html"
    assert guess_content_type("style.css") == "text/css"
    assert guess_content_type("blob.unknownext") == "application/octet-stream"


def test_walk_is_sorted_and_relative(site_root):
    write_tree(site_root, {"b.txt": "b", "a/z.txt": "z", "a/y.txt": "y"})

    entries = list(iter_local_files(site_root))

    assert [e.relative_path for e in entries] == [
        "b.txt",
        os.path.join("a", "y.txt"),
        os.path.join("a", "z.txt"),
    ]
    assert all(e.is_regular_file for e in entries)


def test_missing_root_is_a_read_error(tmp_path):
    with pytest.raises(LocalReadError):
        list(iter_local_files(tmp_path / "missing"))


def test_empty_inventory_marks_everything_changed(site_root):
    write_tree(site_root, {"index.html": "<h1>hi</h1>", "css/site.css": "body{}", "empty.txt": ""})
    changed = ChangedKeySet()

    tasks = list(scan_changes(site_root, {}, changed))

    assert sorted(t.key for t in tasks) == ["css/site.css", "empty.txt", "index.html"]
    assert sorted(changed.paths) == ["/", "/css/site.css", "/empty.txt", "/index.html"]


def test_unchanged_files_are_not_emitted(site_root):
    write_tree(site_root, {"a.txt": "x", "b.txt": "y"})
    inventory = {"a.txt": etag_of(b"x"), "b.txt": etag_of(b"old")}
    changed = ChangedKeySet()
    report = ScanReport()

    tasks = list(scan_changes(site_root, inventory, changed, report=report))

    assert [t.key for t in tasks] == ["b.txt"]
    assert tasks[0].content_type == "text/plain"
    assert tasks[0].size == 1
    assert changed.paths == ["/", "/b.txt"]
    assert report.scanned_count == 2
    assert report.unchanged_count == 1
    assert report.changed_count == 1


def test_unquoted_remote_fingerprint_still_matches(site_root):
    write_tree(site_root, {"a.txt": "x"})
    inventory = {"a.txt": hashlib.md5(b"x").hexdigest()}

    assert list(scan_changes(site_root, inventory, ChangedKeySet())) == []


def test_non_regular_entries_are_skipped(site_root, tmp_path):
    write_tree(site_root, {"real.txt": "r"})
    outside = tmp_path / "outside"
    outside.mkdir()
    (outside / "hidden.txt").write_text("h")
    os.symlink(outside, site_root / "linked-dir")
    os.symlink(site_root / "nowhere", site_root / "broken-link")
    os.mkfifo(site_root / "pipe")

    tasks = list(scan_changes(site_root, {}, ChangedKeySet()))

    assert [t.key for t in tasks] == ["real.txt"]


def test_config_file_and_filters_are_skipped(site_root):
    write_tree(
        site_root,
        {".edgesync.json": "{}", "app.js": "a", "app.js.map": "m", "img/logo.png": "p"},
    )
    report = ScanReport()

    tasks = list(
        scan_changes(
            site_root,
            {},
            ChangedKeySet(),
            path_filter=build_path_filter(exclude_patterns=["*.map"]),
            report=report,
        )
    )

    assert sorted(t.key for t in tasks) == ["app.js", "img/logo.png"]
    assert report.skipped_count == 2


def test_read_failure_is_fatal(site_root, monkeypatch):
    write_tree(site_root, {"a.txt": "x", "b.txt": "y"})

    def unreadable(path, chunk_size):
        raise PermissionError(13, "Permission denied", str(path))

    monkeypatch.setattr(scanner, "compute_fingerprint", unreadable)

    with pytest.raises(LocalReadError) as exc_info:
        list(scan_changes(site_root, {}, ChangedKeySet()))
    assert exc_info.value.path.endswith("a.txt")


def test_stat_failure_during_walk_is_fatal(site_root, monkeypatch):
    write_tree(site_root, {"public.txt": "x", "secret/a.txt": "y"})
    blocked = site_root.resolve() / "secret" / "a.txt"
    original_is_file = Path.is_file

    def is_file(self, *args, **kwargs):
        if self == blocked:
            raise PermissionError(13, "Permission denied", str(self))
        return original_is_file(self, *args, **kwargs)

    monkeypatch.setattr(Path, "is_file", is_file)

    with pytest.raises(LocalReadError) as exc_info:
        list(scan_changes(site_root, {}, ChangedKeySet()))
    assert exc_info.value.path == str(blocked)
    assert exc_info.value.exit_code == 4


def test_colliding_keys_are_fatal(site_root, monkeypatch):
    write_tree(site_root, {"A.txt": "1", "a.txt": "2"})
    monkeypatch.setattr(scanner, "store_key", lambda relative_path: relative_path.lower())

    with pytest.raises(KeyCollisionError):
        list(scan_changes(site_root, {}, ChangedKeySet()))


def test_scan_is_lazy(site_root):
    write_tree(site_root, {"a.txt": "1", "b.txt": "2"})
    changed = ChangedKeySet()

    tasks = scan_changes(site_root, {}, changed)
    assert changed.paths == ["/"]

    next(tasks)
    assert changed.paths == ["/", "/a.txt"]
