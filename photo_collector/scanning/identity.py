import os
from pathlib import Path

from ..exceptions import FileAccessError


def get_file_id(path: Path) -> str:
    """
    Returns the platform identity of the file at `path` as "<device>:<inode>".

    The identity follows the on-disk object, so a rename on the same
    filesystem keeps it. Copying to another volume yields a new one. Hard
    links share one identity; callers must not sync both paths.
    """
    try:
        st = os.stat(path)
    except OSError as e:
        raise FileAccessError(f"could not stat '{path}': {e}", path=str(path)) from e

    if not st.st_ino:
        raise FileAccessError(f"no file identity available for '{path}'", path=str(path))
    return f"{st.st_dev}:{st.st_ino}"
