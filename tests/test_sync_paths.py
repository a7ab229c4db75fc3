"""Tests for sync/paths.py -- remote layout and folder path building."""

from collection_sync.providers.base import DirectoryItem
from collection_sync.store import Folder
from collection_sync.sync.paths import (
    build_folder_path,
    collection_base_path,
    collection_root_path,
    group_collection_dirs,
    request_remote_path,
    yaml_files,
)


def _folder(folder_id, parent_id=None):
    return Folder(id=folder_id, collection_id="c1", parent_id=parent_id, name=folder_id)


def _file(path, rid="x"):
    return DirectoryItem(kind="file", path=path, remote_id=rid)


class TestRemotePaths:
    def test_collection_paths(self):
        assert collection_base_path("c1") == "collections/c1"
        assert collection_root_path("c1") == "collections/c1/_collection.yaml"

    def test_request_path_at_root(self):
        assert request_remote_path("c1", "", "r1") == "collections/c1/r1.yaml"

    def test_request_path_in_folder(self):
        assert (
            request_remote_path("c1", "f1/f2/", "r1")
            == "collections/c1/f1/f2/r1.yaml"
        )


class TestBuildFolderPath:
    def test_no_folder(self):
        assert build_folder_path(None, {}) == ""

    def test_nested_folders_outermost_first(self):
        folders = {
            "top": _folder("top"),
            "mid": _folder("mid", "top"),
            "leaf": _folder("leaf", "mid"),
        }
        assert build_folder_path("leaf", folders) == "top/mid/leaf/"

    def test_missing_parent_stops_walk(self):
        folders = {"leaf": _folder("leaf", "gone")}
        assert build_folder_path("leaf", folders) == "leaf/"

    def test_unknown_folder(self):
        assert build_folder_path("nope", {"a": _folder("a")}) == ""

    def test_cycle_terminates(self, caplog):
        folders = {
            "a": _folder("a", "b"),
            "b": _folder("b", "c"),
            "c": _folder("c", "a"),
        }

        path = build_folder_path("a", folders)

        assert path == "c/b/a/"
        assert "cyclic" in caplog.text

    def test_self_parent_terminates(self):
        assert build_folder_path("a", {"a": _folder("a", "a")}) == "a/"


class TestListingHelpers:
    def test_yaml_files_only(self):
        items = [
            _file("collections/c1/a.yaml"),
            _file("collections/c1/README.md"),
            DirectoryItem(kind="dir", path="collections/c1/f.yaml"),
        ]
        assert [i.path for i in yaml_files(items)] == ["collections/c1/a.yaml"]

    def test_group_requires_root_descriptor(self):
        items = [
            _file("collections/c1/_collection.yaml"),
            _file("collections/c1/r1.yaml"),
            _file("collections/c1/f1/_folder.yaml"),
            _file("collections/c2/r1.yaml"),
            _file("collections/c3/deep/_collection.yaml"),
            DirectoryItem(kind="dir", path="collections/c1/f1"),
        ]

        groups = group_collection_dirs(items)

        assert list(groups) == ["c1"]
        assert [i.path for i in groups["c1"]] == [
            "collections/c1/_collection.yaml",
            "collections/c1/r1.yaml",
            "collections/c1/f1/_folder.yaml",
        ]

    def test_group_empty_listing(self):
        assert group_collection_dirs([]) == {}
