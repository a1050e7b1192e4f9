import os
from pathlib import Path

import pytest

from photo_collector.models import Folder
from photo_collector.scanning.walker import FolderStack, TreeWalker, is_collectable


def test_folder_stack_tracks_parents():
    stack = FolderStack()
    root = stack.enter("", "/lib", 0)
    assert root.parent_path == ""

    y = stack.enter("2023", "/lib/2023", 1)
    assert y.parent_path == ""
    assert y.relative_path == "2023"

    trip = stack.enter("trip", "/lib/2023/trip", 2)
    assert trip.parent_path == "2023"
    assert trip.relative_path == os.path.join("2023", "trip")

def test_folder_stack_pops_to_common_ancestor():
    stack = FolderStack()
    stack.enter("", "/lib", 0)
    stack.enter("a", "/lib/a", 1)
    stack.enter("b", "/lib/a/b", 2)
    stack.enter("c", "/lib/a/b/c", 3)

    sibling = stack.enter("z", "/lib/z", 1)
    assert sibling.parent_path == ""
    assert len(stack) == 2
    assert stack.top is sibling

    nested = stack.enter("y", "/lib/z/y", 2)
    assert nested.parent_path == "z"

def test_folder_stack_rejects_skipped_depth():
    stack = FolderStack()
    stack.enter("", "/lib", 0)
    with pytest.raises(ValueError):
        stack.enter("deep", "/lib/a/deep", 2)

def test_is_collectable():
    assert is_collectable("a.jpg")
    assert is_collectable("b.JPEG")
    assert not is_collectable("c.png")
    assert not is_collectable("notes.txt")
    assert not is_collectable("jpg")

def _tree(root: Path):
    (root / "2023" / "trip").mkdir(parents=True)
    (root / "2023" / "trip" / "a.jpg").write_bytes(b"a")
    (root / "2023" / "trip" / "B.JPG").write_bytes(b"b")
    (root / "2023" / "notes.txt").write_text("n")
    (root / "2024").mkdir()
    (root / "top.jpeg").write_bytes(b"t")

def test_walk_yields_folders_before_contents(library):
    _tree(library)
    items = list(TreeWalker().walk(library))

    folders = [i for i in items if isinstance(i, Folder)]
    files = [i for i in items if isinstance(i, Path)]

    assert [f.folder_name for f in folders] == ["", "2023", "trip", "2024"]
    assert folders[0].full_path == str(library)
    assert folders[2].parent_path == "2023"
    assert folders[3].parent_path == ""

    assert sorted(p.name for p in files) == ["B.JPG", "a.jpg", "top.jpeg"]

    # Every file comes after the folder that contains it
    seen = set()
    for item in items:
        if isinstance(item, Folder):
            seen.add(item.full_path)
        else:
            assert str(item.parent) in seen

def test_walk_skips_cache_dir(library):
    _tree(library)
    cache = library / ".cache"
    (cache / "2023" / "thumbnails").mkdir(parents=True)
    (cache / "2023" / "thumbnails" / "a.jpg").write_bytes(b"x")

    items = list(TreeWalker(skip_dirs={cache}).walk(library))
    assert all(".cache" not in str(getattr(i, "full_path", i)) for i in items)

@pytest.mark.skipif(os.name != "posix" or os.geteuid() == 0, reason="needs POSIX permissions as non-root")
def test_unreadable_directory_is_reported(library):
    _tree(library)
    locked = library / "locked"
    locked.mkdir()
    locked.chmod(0)
    try:
        walker = TreeWalker()
        list(walker.walk(library))
    finally:
        locked.chmod(0o755)

    assert len(walker.errors) == 1
    assert walker.errors[0].path == str(locked)
