"""
Shared fixtures: synthetic archives and directory snapshots
"""

import gzip
import io
import json
import lzma
import os
import tarfile

import pytest


def _tar_bytes(entries):
    """
    Build an uncompressed tar in memory
    entries: list of (name, content) where content None denotes a directory
    """
    buf = io.BytesIO()
    with tarfile.open(fileobj=buf, mode="w") as archive:
        for name, content in entries:
            info = tarfile.TarInfo(name)
            if content is None:
                info.type = tarfile.DIRTYPE
                info.mode = 0o755
                archive.addfile(info)
            else:
                info.size = len(content)
                info.mode = 0o644
                archive.addfile(info, io.BytesIO(content))
    return buf.getvalue()


@pytest.fixture
def sample_entries():
    return [
        ("foo/", None),
        ("foo/bar.txt", b"hello"),
        ("foo/nested/", None),
        ("foo/nested/data.bin", bytes(range(256)) * 8),
        ("top.log", b"line one\nline two\n"),
        ("implicit/parent/file.txt", b"no directory entry precedes me"),
    ]


@pytest.fixture
def make_archive():
    """
    Write a tar (optionally gz or xz compressed) to path
    """
    def _make(path, entries, compression=None):
        data = _tar_bytes(entries)
        if compression == "gz":
            data = gzip.compress(data)
        elif compression == "xz":
            data = lzma.compress(data)
        os.makedirs(os.path.dirname(str(path)), exist_ok=True)
        with open(path, "wb") as wf:
            wf.write(data)
        return str(path)
    return _make


@pytest.fixture
def make_manifest():
    """
    Write a manifest_<name>.json document beneath a directory
    """
    def _make(directory, name, document):
        path = os.path.join(str(directory), "manifest_%s.json" % name)
        os.makedirs(str(directory), exist_ok=True)
        with open(path, "w") as wf:
            if isinstance(document, str):
                wf.write(document)
            else:
                json.dump(document, wf)
        return path
    return _make


@pytest.fixture
def read_tree():
    """
    Snapshot regular files beneath root as { relative path: bytes }
    """
    def _read(root, exclude=()):
        tree = {}
        for dir_path, _, file_names in os.walk(str(root)):
            for name in file_names:
                path = os.path.join(dir_path, name)
                rel_path = os.path.relpath(path, str(root)).replace(os.sep, "/")
                if rel_path in exclude or os.path.islink(path):
                    continue
                with open(path, "rb") as rf:
                    tree[rel_path] = rf.read()
        return tree
    return _read


@pytest.fixture
def expected_tree(sample_entries):
    return {name: content for name, content in sample_entries if content is not None}
