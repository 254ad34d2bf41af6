"""Volume enumeration and git repository discovery."""

import glob
import logging
import os
import shutil
import string
import sys
import threading
from typing import Iterable, Iterator, List, Optional

from hulud_scanner.errors import GitNotFoundError
from hulud_scanner.models import Repository, Volume
from hulud_scanner.walk import CONTROL_DIR_NAME, walk_tree

logger = logging.getLogger(__name__)

PROC_MOUNTS = "/proc/mounts"

PSEUDO_FS_TYPES = {
    "proc", "sysfs", "devtmpfs", "devpts", "tmpfs", "ramfs", "cgroup", "cgroup2",
    "securityfs", "debugfs", "tracefs", "pstore", "bpf", "mqueue", "hugetlbfs",
    "configfs", "fusectl", "autofs", "binfmt_misc", "rpc_pipefs", "nsfs",
    "efivarfs", "squashfs", "devfs", "selinuxfs",
}

# Network and cloud-sync mounts are out of scope.
REMOTE_FS_TYPES = {
    "nfs", "nfs4", "cifs", "smbfs", "smb3", "afs", "ncpfs", "9p",
    "fuse.sshfs", "sshfs", "fuse.rclone", "fuse.s3fs", "davfs", "fuse.gcsfuse",
}

EXCLUDED_MOUNT_PREFIXES = ("/proc", "/sys", "/dev", "/run", "/snap")


def require_git() -> str:
    """Return the resolved git executable or fail the whole scan."""
    git = shutil.which("git")
    if not git:
        raise GitNotFoundError(
            "git executable not found on PATH; branch checks cannot run, refusing to scan."
        )
    return git


def list_volumes(excluded: Iterable[str] = ()) -> List[Volume]:
    """Every local filesystem root mounted read-write, except pseudo and excluded mounts."""
    skip = {os.path.normcase(os.path.abspath(p)) for p in excluded}
    if sys.platform == "win32":
        volumes = _windows_volumes()
    elif os.path.exists(PROC_MOUNTS):
        volumes = _proc_mount_volumes(PROC_MOUNTS)
    else:
        volumes = _posix_fallback_volumes()

    result = []
    for volume in volumes:
        if os.path.normcase(os.path.abspath(volume.path)) in skip:
            continue
        result.append(volume)
    return result


def _proc_mount_volumes(mounts_path: str) -> List[Volume]:
    volumes: List[Volume] = []
    seen = set()
    try:
        with open(mounts_path, "r", encoding="utf-8", errors="replace") as f:
            lines = f.readlines()
    except OSError as e:
        logger.warning("Cannot read %s (%s), falling back to /", mounts_path, e)
        return [Volume(path="/")]

    for line in lines:
        parts = line.split()
        if len(parts) < 4:
            continue
        mount_point = _unescape_mount(parts[1])
        fs_type = parts[2]
        options = parts[3].split(",")
        if fs_type in PSEUDO_FS_TYPES or fs_type in REMOTE_FS_TYPES:
            continue
        if "ro" in options:
            continue
        if mount_point != "/" and mount_point.startswith(EXCLUDED_MOUNT_PREFIXES):
            continue
        if mount_point in seen:
            continue
        seen.add(mount_point)
        volumes.append(Volume(path=mount_point, fs_type=fs_type))
    return volumes


def _unescape_mount(field: str) -> str:
    # /proc/mounts octal-escapes spaces, tabs, newlines and backslashes
    return (
        field.replace("\\040", " ")
        .replace("\\011", "\t")
        .replace("\\012", "\n")
        .replace("\\134", "\\")
    )


def _posix_fallback_volumes() -> List[Volume]:
    volumes = [Volume(path="/")]
    for path in sorted(glob.glob("/Volumes/*")):
        if os.path.isdir(path) and not os.path.islink(path):
            volumes.append(Volume(path=path))
    return volumes


def _windows_volumes() -> List[Volume]:
    listdrives = getattr(os, "listdrives", None)
    if listdrives is not None:
        drives = listdrives()
    else:
        drives = [f"{letter}:\\" for letter in string.ascii_uppercase if os.path.exists(f"{letter}:\\")]
    return [Volume(path=d) for d in drives]


def find_repositories(
    volume: Volume,
    cancel_event: Optional[threading.Event] = None,
    one_filesystem: bool = True,
) -> Iterator[Repository]:
    """Yield a Repository for each ``.git`` directory (any case) under the volume."""
    for dirpath, dirnames, _files in walk_tree(
        volume.path,
        cancel_event=cancel_event,
        skip_control_dirs=False,
        same_device=one_filesystem,
    ):
        control = [d for d in dirnames if d.lower() == CONTROL_DIR_NAME]
        if not control:
            continue
        for name in control:
            control_dir = os.path.join(dirpath, name)
            if os.path.islink(control_dir):
                continue
            yield Repository(root_path=dirpath, control_dir=control_dir)
        # never descend into repository metadata
        dirnames[:] = [d for d in dirnames if d.lower() != CONTROL_DIR_NAME]
