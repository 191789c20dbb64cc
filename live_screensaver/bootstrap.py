import ctypes
import ctypes.util
import logging
import os
import sys
from pathlib import Path

_WINDOWS_DLL_NAMES = ("libmpv-2.dll", "mpv-2.dll", "mpv-1.dll")


def _unique_existing(dirs) -> list[Path]:
    unique = []
    seen = set()
    for directory in dirs:
        key = os.path.normcase(str(directory))
        if key in seen or not directory.exists():
            continue
        seen.add(key)
        unique.append(directory)
    return unique


def libmpv_search_dirs(project_dir: Path) -> list[Path]:
    """Folders checked for a bundled libmpv before the system loader runs."""
    candidates = [
        project_dir.resolve(),
        (project_dir / "vendor").resolve(),
        Path.cwd().resolve(),
    ]
    # If running as compiled EXE, also check the executable's directory
    if getattr(sys, "frozen", False):
        candidates.insert(0, Path(sys.executable).parent.resolve())
    return _unique_existing(candidates)


def configure_libmpv(project_dir: Path) -> str | None:
    """Make libmpv discoverable for python-mpv. Returns what was found, if anything."""
    dirs = libmpv_search_dirs(project_dir)
    if os.name != "nt":
        found = ctypes.util.find_library("mpv")
        if not found:
            logging.warning("libmpv not found by the system loader; install mpv/libmpv")
        return found

    if hasattr(os, "add_dll_directory"):
        for directory in dirs:
            os.add_dll_directory(str(directory))
    os.environ["PATH"] = os.pathsep.join([*(str(d) for d in dirs), os.environ.get("PATH", "")])

    # Pre-load a bundled dll so `import mpv` binds to it.
    for directory in dirs:
        for dll_name in _WINDOWS_DLL_NAMES:
            dll_path = directory / dll_name
            if not dll_path.exists():
                continue
            try:
                ctypes.CDLL(str(dll_path))
                return str(dll_path)
            except OSError as e:
                logging.debug("Could not load %s: %s", dll_path, e)
    return None
