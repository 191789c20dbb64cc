import os
import sys
import argparse
import threading
import logging
import shutil
import subprocess
from pathlib import Path

from PySide6.QtWidgets import QApplication
from PySide6.QtNetwork import QLocalServer, QLocalSocket

from .bootstrap import configure_libmpv

_HERE = Path(__file__).resolve().parent

SERVER_NAME = "live_screensaver_single_instance_server"


def _runtime_base_dir() -> Path:
    if getattr(sys, "frozen", False):
        return Path(sys.executable).resolve().parent
    return _HERE


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="live-screensaver",
        description="Play a live HLS stream as a screensaver on every display.",
    )
    parser.add_argument("--configure", action="store_true", help="Open the stream configuration dialog.")
    parser.add_argument("--windowed", action="store_true", help="Run in a single window instead of fullscreen.")
    parser.add_argument("--verbose", action="store_true", help="Also log debug output to the console.")
    parser.add_argument(
        "--language",
        metavar="CODE",
        help='Save the UI language (e.g. "de"); "auto" follows the system locale.',
    )
    return parser.parse_args(argv)


def _probe_tool_version(binary_name: str) -> str:
    exe = shutil.which(binary_name)
    if not exe:
        return "not found"
    try:
        run_kwargs = {}
        if os.name == "nt":
            flags = getattr(subprocess, "CREATE_NO_WINDOW", 0)
            if flags:
                run_kwargs["creationflags"] = flags
        proc = subprocess.run(
            [exe, "--version"],
            capture_output=True,
            text=True,
            timeout=3,
            check=False,
            **run_kwargs,
        )
        raw = (proc.stdout or proc.stderr or "").splitlines()
        first_line = raw[0].strip() if raw else ""
        return f"{exe} ({first_line or 'version unknown'})"
    except (OSError, subprocess.SubprocessError) as e:
        return f"{exe} (version probe failed: {e})"


def _log_runtime_tool_diagnostics(libmpv: str | None) -> None:
    from .utils import find_ytdlp_path

    try:
        import yt_dlp as _yt_dlp

        py_yt_dlp = getattr(_yt_dlp.version, "__version__", "unknown")
    except ImportError as e:
        py_yt_dlp = f"unavailable ({e})"
    logging.info("Runtime PATH head=%s", os.environ.get("PATH", "").split(os.pathsep)[:4])
    logging.info("Runtime libmpv=%s", libmpv or "system default")
    logging.info("Runtime yt-dlp (python package)=%s", py_yt_dlp)
    logging.info("Runtime tool yt-dlp cli=%s resolved=%s", _probe_tool_version("yt-dlp"), find_ytdlp_path() or "not found")


def _prepend_runtime_paths() -> None:
    base_dir = _runtime_base_dir()
    candidates = [str(base_dir), str(base_dir / "vendor")]
    current = os.environ.get("PATH", "")
    existing = current.split(os.pathsep) if current else []
    merged = []
    seen = set()
    for path in candidates + existing:
        norm = str(path).strip()
        if not norm:
            continue
        key = os.path.normcase(norm)
        if key in seen:
            continue
        seen.add(key)
        merged.append(norm)
    os.environ["PATH"] = os.pathsep.join(merged)


def _another_instance_running() -> bool:
    socket = QLocalSocket()
    socket.connectToServer(SERVER_NAME)
    if socket.waitForConnected(300):
        socket.disconnectFromServer()
        return True
    return False


def _run_configure(settings) -> int:
    from .ui.dialogs import ConfigureDialog

    dialog = ConfigureDialog(settings=settings)
    dialog.exec()
    return 0


def _run_screensaver(app: QApplication, settings, windowed: bool) -> int:
    from .coordinator import PlaybackCoordinator
    from .player import MpvPlayer
    from .app_logging import set_crash_context
    from .settings import load_source_url
    from .ui.viewer import FrameMirror, ScreensaverView

    if _another_instance_running():
        logging.info("Screensaver already running; exiting")
        return 0

    server = QLocalServer()
    server.removeServer(SERVER_NAME)
    server.listen(SERVER_NAME)

    views: list[ScreensaverView] = []

    # mpv draws into the first display; the others paint copies of its frames.
    def player_factory():
        wid = views[0].video_wid() if views else None
        return MpvPlayer(wid=wid)

    coordinator = PlaybackCoordinator(settings=settings, player_factory=player_factory)
    mirror = FrameMirror(coordinator)
    set_crash_context(source=load_source_url(settings))
    coordinator.state_changed.connect(lambda state: set_crash_context(state=state))

    def quit_all() -> None:
        for view in views:
            view.close()
        app.quit()

    screens = app.screens()[:1] if windowed else app.screens()
    for index, screen in enumerate(screens):
        view = ScreensaverView(coordinator, quit_on_input=not windowed, mirror=mirror if index else None)
        view.exit_requested.connect(quit_all)
        views.append(view)
        if windowed:
            view.resize(960, 540)
            view.setWindowTitle("Live Screensaver")
            view.show()
        else:
            view.setScreen(screen)
            view.setGeometry(screen.geometry())
            view.showFullScreen()

    def _quit_watchdog() -> None:
        killer = threading.Timer(3.0, lambda: os._exit(0))
        killer.daemon = True
        killer.start()

    app.aboutToQuit.connect(_quit_watchdog)
    app.aboutToQuit.connect(coordinator.teardown)

    exit_code = app.exec()

    try:
        server.close()
        server.removeServer(SERVER_NAME)
    except RuntimeError as e:
        logging.debug("Server cleanup skipped: %s", e)
    return int(exit_code)


def run(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    _prepend_runtime_paths()

    from .i18n import setup_i18n
    from .app_logging import log_session_end, setup_app_logging
    from .settings import APP_NAME, ORG_NAME, get_settings, save_language_setting

    setup_app_logging(verbose=args.verbose)
    # Must run before anything imports mpv.
    libmpv = configure_libmpv(_runtime_base_dir())
    _log_runtime_tool_diagnostics(libmpv)
    if args.language is not None:
        save_language_setting(args.language)
        logging.info("UI language set to %s", args.language or "auto")
    setup_i18n()

    app = QApplication(sys.argv[:1])
    app.setOrganizationName(ORG_NAME)
    app.setApplicationName(APP_NAME)
    app.setQuitOnLastWindowClosed(True)

    settings = get_settings()
    if args.configure:
        exit_code = _run_configure(settings)
    else:
        exit_code = _run_screensaver(app, settings, windowed=args.windowed)
    log_session_end(exit_code)

    lingering = [
        t
        for t in threading.enumerate()
        if t is not threading.main_thread() and t.is_alive() and not t.daemon
    ]
    if lingering:
        logging.warning(
            "Forcing process exit due to lingering non-daemon threads: %s",
            [getattr(t, "name", "unknown") for t in lingering],
        )
        os._exit(int(exit_code))
    return int(exit_code)


def main() -> None:
    raise SystemExit(run())


if __name__ == "__main__":
    main()
