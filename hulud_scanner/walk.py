"""Read-only directory walking shared by the locator and the matchers."""

import logging
import os
import threading
from typing import Iterator, Optional, Tuple

logger = logging.getLogger(__name__)

CONTROL_DIR_NAME = ".git"


def _log_walk_error(err: OSError) -> None:
    logger.warning("Skipping unreadable path %s: %s", err.filename, err.strerror or err)


def walk_tree(
    root: str,
    cancel_event: Optional[threading.Event] = None,
    skip_control_dirs: bool = True,
    same_device: bool = False,
) -> Iterator[Tuple[str, list, list]]:
    """os.walk without symlink following that tolerates unreadable subtrees.

    Directory lists are pruned in place, so callers may prune further.
    With ``same_device`` the walk stays on the filesystem holding ``root``.
    """
    root_dev = None
    if same_device:
        try:
            root_dev = os.stat(root).st_dev
        except OSError as e:
            _log_walk_error(e)
            return

    for dirpath, dirnames, filenames in os.walk(root, onerror=_log_walk_error, followlinks=False):
        if cancel_event is not None and cancel_event.is_set():
            return
        if skip_control_dirs:
            dirnames[:] = [d for d in dirnames if d.lower() != CONTROL_DIR_NAME]
        if root_dev is not None:
            dirnames[:] = [d for d in dirnames if _on_device(os.path.join(dirpath, d), root_dev)]
        yield dirpath, dirnames, filenames


def iter_files(root: str, cancel_event: Optional[threading.Event] = None) -> Iterator[str]:
    """Yield every regular-file path under ``root``, skipping ``.git`` metadata.

    Subdirectories that are repositories of their own are left out; the
    locator reports them separately.
    """
    for dirpath, dirnames, filenames in walk_tree(root, cancel_event):
        dirnames[:] = [d for d in dirnames if not is_repository_root(os.path.join(dirpath, d))]
        for name in filenames:
            yield os.path.join(dirpath, name)


def is_repository_root(path: str) -> bool:
    try:
        with os.scandir(path) as entries:
            return any(
                entry.name.lower() == CONTROL_DIR_NAME and entry.is_dir(follow_symlinks=False)
                for entry in entries
            )
    except OSError:
        return False


def _on_device(path: str, dev: int) -> bool:
    try:
        return os.lstat(path).st_dev == dev
    except OSError as e:
        _log_walk_error(e)
        return False
