import os
import logging
from pathlib import Path
from typing import Iterator, List, Optional, Set, Union

from .. import config
from ..exceptions import FileAccessError
from ..models import Folder


class FolderStack:
    """
    Ancestor folders of the directory currently being visited, root first.

    The walk is iterative, so parent relationships are rebuilt here rather
    than carried on the call stack: when the walk moves to a directory at
    `depth`, everything deeper than its parent is popped off first.
    """

    def __init__(self):
        self._items: List[Folder] = []

    def __len__(self) -> int:
        return len(self._items)

    @property
    def top(self) -> Optional[Folder]:
        return self._items[-1] if self._items else None

    def enter(self, name: str, full_path: str, depth: int) -> Folder:
        if depth > len(self._items):
            raise ValueError(f"cannot enter depth {depth} with only {len(self._items)} ancestors")

        # Pop back to the common ancestor
        while len(self._items) > depth:
            self._items.pop()

        parent = self.top
        folder = Folder(
            folder_name=name,
            parent_path=parent.relative_path if parent else "",
            full_path=full_path,
        )
        self._items.append(folder)
        return folder


class TreeWalker:
    def __init__(self, skip_dirs: Optional[Set[Path]] = None):
        self.skip_dirs = skip_dirs or set()
        self.errors: List[FileAccessError] = []

    def walk(self, root: Path) -> Iterator[Union[Folder, Path]]:
        """
        Depth-first walk of the library using os.scandir.

        Yields a Folder for every directory (the root included) before any of
        its contents, then the JPEG files directly inside it. Every other file
        is ignored. Unreadable directories are recorded in `self.errors`.
        """
        folders = FolderStack()
        stack = [(root, 0)]

        while stack:
            current, depth = stack.pop()
            if self.skip_dirs and any(sd == current or sd in current.parents for sd in self.skip_dirs):
                continue

            yield folders.enter("" if depth == 0 else current.name, str(current), depth)

            try:
                with os.scandir(current) as it:
                    entries = list(it)
            except OSError as e:
                logging.warning(f"Could not read directory {current}: {e}")
                self.errors.append(FileAccessError(f"could not read directory '{current}': {e}", path=str(current)))
                continue

            # Sort for stable traversal order
            entries.sort(key=lambda e: e.name.lower())

            dirs = []
            for e in entries:
                if e.is_dir(follow_symlinks=False):
                    dirs.append(Path(e.path))
                elif e.is_file(follow_symlinks=False):
                    if is_collectable(e.name):
                        yield Path(e.path)
                    else:
                        logging.debug(f"Skipping non-JPEG file {e.path}")

            # Push dirs to stack (reversed so we process A before Z)
            for d in reversed(dirs):
                stack.append((d, depth + 1))


def is_collectable(name: str) -> bool:
    return os.path.splitext(name)[1].lower() in config.JPEG_EXTS
