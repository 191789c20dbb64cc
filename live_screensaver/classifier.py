"""Syntactic classification of configured video sources.

No network access happens here: a source is either already an HLS manifest,
a stream.place page that maps onto the stream.place playback API, or
something yt-dlp has to resolve.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional
from urllib.parse import urlparse

MANIFEST_MARKER = ".m3u8"
STREAM_PLACE_DOMAIN = "stream.place"
STREAM_PLACE_EMBED_PREFIX = "embed/"
STREAM_PLACE_MANIFEST_TEMPLATE = "https://{host}/api/playback/{username}/hls/index.m3u8"


class SourceKind(Enum):
    DIRECT_MANIFEST = "direct"
    REDIRECT_REWRITE = "redirect"
    NEEDS_EXTRACTION = "extract"


@dataclass(frozen=True)
class Classification:
    kind: SourceKind
    url: Optional[str]

    @property
    def usable(self) -> bool:
        return bool(self.url)


def _safe_parse(url: str):
    try:
        return urlparse(str(url or "").strip())
    except ValueError:
        return None


def is_stream_place_url(url: str) -> bool:
    parsed = _safe_parse(url)
    if parsed is None:
        return False
    try:
        host = (parsed.hostname or "").lower()
    except ValueError:
        return False
    return host == STREAM_PLACE_DOMAIN or host.endswith("." + STREAM_PLACE_DOMAIN)


def stream_place_manifest_url(url: str) -> Optional[str]:
    """Map stream.place/<user> (or stream.place/embed/<user>) to its HLS URL."""
    parsed = _safe_parse(url)
    if parsed is None:
        return None
    try:
        host = parsed.hostname
    except ValueError:
        return None
    if not host:
        return None
    username = parsed.path.strip("/")
    if username.startswith(STREAM_PLACE_EMBED_PREFIX):
        username = username[len(STREAM_PLACE_EMBED_PREFIX):]
    if not username:
        return None
    return STREAM_PLACE_MANIFEST_TEMPLATE.format(host=host, username=username)


def needs_extraction(url: str) -> bool:
    parsed = _safe_parse(url)
    if parsed is None:
        return True
    segments = [part for part in parsed.path.split("/") if part]
    if not segments:
        return True
    return MANIFEST_MARKER not in segments[-1]


def classify(url: str) -> Classification:
    if is_stream_place_url(url):
        return Classification(SourceKind.REDIRECT_REWRITE, stream_place_manifest_url(url))
    if needs_extraction(url):
        return Classification(SourceKind.NEEDS_EXTRACTION, url)
    return Classification(SourceKind.DIRECT_MANIFEST, url)
