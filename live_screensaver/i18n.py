import json
import locale
import logging
from .utils import get_resource_path

# Fallback English dictionary
_default_en = {
    # Configuration dialog
    "Live Screensaver Options": "Live Screensaver Options",
    "Stream URL:": "Stream URL:",
    "Leave empty to use the default demo stream.": "Leave empty to use the default demo stream.",
    "Enter an HLS (.m3u8), stream.place or video page URL.": "Enter an HLS (.m3u8), stream.place or video page URL.",
    "Checking URL...": "Checking URL...",
    "URL looks good.": "URL looks good.",
    "Cancel": "Cancel",
    "OK": "OK",

    # Viewer
    "Loading stream...": "Loading stream...",
    "Stream unavailable": "Stream unavailable",

    # URL format
    "Invalid URL format. Please check for typos.": "Invalid URL format. Please check for typos.",
    "URL must start with http:// or https://": "URL must start with http:// or https://",
    "URL must include a domain (e.g., youtube.com)": "URL must include a domain (e.g., youtube.com)",
    "Invalid stream.place URL. Use format: stream.place/username": "Invalid stream.place URL. Use format: stream.place/username",
    "Invalid stream URL": "Invalid stream URL",

    # Network probe
    "Connection timed out. Check your internet or try another URL.": "Connection timed out. Check your internet or try another URL.",
    "Server not found. Check the URL and try again.": "Server not found. Check the URL and try again.",
    "No internet connection. Please check your network.": "No internet connection. Please check your network.",
    "Connection failed: {}": "Connection failed: {}",
    "Invalid server response. This may not be a valid stream.": "Invalid server response. This may not be a valid stream.",
    "Access denied (HTTP {}). This stream may require authentication.": "Access denied (HTTP {}). This stream may require authentication.",
    "Stream not found (HTTP 404). Check the URL or try another stream.": "Stream not found (HTTP 404). Check the URL or try another stream.",
    "Server error (HTTP {}). The stream service may be down.": "Server error (HTTP {}). The stream service may be down.",
    "Unexpected response (HTTP {}). Try another URL.": "Unexpected response (HTTP {}). Try another URL.",

    # yt-dlp
    "yt-dlp is required for this URL. Install it with: pip install yt-dlp": "yt-dlp is required for this URL. Install it with: pip install yt-dlp",
    "Failed to run yt-dlp: {}": "Failed to run yt-dlp: {}",
    "Could not extract stream URL": "Could not extract stream URL",
    "Video is unavailable or private. Try another URL.": "Video is unavailable or private. Try another URL.",
    "This video requires sign-in. Try another URL.": "This video requires sign-in. Try another URL.",
    "URL not supported. Try a YouTube or other supported video URL.": "URL not supported. Try a YouTube or other supported video URL.",
    "Video not found (404). Check the URL and try again.": "Video not found (404). Check the URL and try again.",
    "This is a scheduled live event that hasn't started yet.": "This is a scheduled live event that hasn't started yet.",
    "This stream is currently offline. Try again later or use another URL.": "This stream is currently offline. Try again later or use another URL.",
    "Could not load video. Check the URL or try another.": "Could not load video. Check the URL or try another.",
}

_translations = {}


def get_system_language():
    try:
        lang, _ = locale.getlocale()
        if lang:
            return lang.split('_')[0].lower()
    except ValueError:
        pass
    return "en"


def load_language(lang_code):
    global _translations
    lang_file = get_resource_path("locales") / f"{lang_code}.json"
    if not lang_file.exists():
        _translations = {}
        return
    try:
        with open(lang_file, "r", encoding="utf-8") as f:
            _translations = json.load(f)
    except (OSError, ValueError) as e:
        logging.warning("Failed to load language '%s': %s", lang_code, e)
        _translations = {}


def setup_i18n(lang_code=None):
    if not lang_code:
        # Check settings first, then fall back to system
        from .settings import load_language_setting
        lang_code = load_language_setting("")
        if not lang_code:
            lang_code = get_system_language()
    load_language(lang_code)


def tr(text, *args):
    """Translate function. Takes a format string and optional positional arguments."""
    translated = _translations.get(text, _default_en.get(text, text))
    if args:
        try:
            return translated.format(*args)
        except (IndexError, KeyError, ValueError):
            return translated
    return translated
