from pathlib import Path

from .utils import get_user_data_dir


_MPV_CONF_TEMPLATE = """# Live Screensaver - advanced libmpv configuration
# Add raw libmpv properties here.
# Examples:
# vo=gpu-next
# hwdec=auto-safe
# cache-secs=30
"""

DEFAULT_RENDERER = "gpu"
DEFAULT_HWDEC = "auto-safe"


def load_mpv_video_overrides(mpv_conf_path: str) -> dict:
    """Renderer/hwdec picked in mpv.conf, so the player is built with them."""
    overrides: dict = {}
    try:
        conf_path = Path(mpv_conf_path)
        if not conf_path.exists():
            return overrides

        for raw_line in conf_path.read_text(encoding="utf-8").splitlines():
            line = raw_line.strip()
            if not line or line.startswith("#") or "=" not in line:
                continue
            key, value = line.split("=", 1)
            key = key.strip().lower()
            value = value.strip()
            if key == "vo" and value in {"gpu", "gpu-next"}:
                overrides["renderer"] = value
            elif key == "hwdec" and value in {"no", "auto", "auto-safe", "d3d11va", "nvdec", "videotoolbox", "vaapi"}:
                overrides["hwdec"] = value
    except (OSError, UnicodeDecodeError):
        return {}
    return overrides


def ensure_mpv_config_layout() -> dict:
    config_dir = Path(get_user_data_dir()) / "mpv"
    config_dir.mkdir(parents=True, exist_ok=True)

    mpv_conf_path = config_dir / "mpv.conf"
    if not mpv_conf_path.exists():
        mpv_conf_path.write_text(_MPV_CONF_TEMPLATE, encoding="utf-8")

    overrides = load_mpv_video_overrides(str(mpv_conf_path))
    return {
        "config_dir": str(config_dir),
        "mpv_conf_path": str(mpv_conf_path),
        "renderer": overrides.get("renderer", DEFAULT_RENDERER),
        "hwdec": overrides.get("hwdec", DEFAULT_HWDEC),
    }
