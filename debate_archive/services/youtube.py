"""YouTube link parsing."""
import re
from typing import NamedTuple, Optional
from urllib.parse import parse_qs, urlparse

WATCH_HOSTS = {"youtube.com", "www.youtube.com", "m.youtube.com", "music.youtube.com"}
SHORT_HOSTS = {"youtu.be", "www.youtu.be"}
VIDEO_ID_PATTERN = re.compile(r"[A-Za-z0-9_-]{1,64}")
# t=90, t=90s, t=1m30s, t=1h2m3s
TIMESTAMP_PATTERN = re.compile(r"(?:(\d+)h)?(?:(\d+)m)?(?:(\d+)s?)?")


class VideoRef(NamedTuple):
    video_id: str
    start_seconds: int


def _start_seconds(value: Optional[str]) -> int:
    if not value:
        return 0
    match = TIMESTAMP_PATTERN.fullmatch(value.strip())
    if match is None:
        return 0
    hours, minutes, seconds = (int(g) if g else 0 for g in match.groups())
    return hours * 3600 + minutes * 60 + seconds


def parse_youtube_url(url: Optional[str]) -> Optional[VideoRef]:
    """
    Extract (video_id, start_seconds) from a YouTube watch URL or a
    youtu.be short link. The host must be YouTube's; t= is read from the
    query string wherever it appears.

    Returns None when the URL does not match; callers treat that as a
    rejected submission, never as a default.
    """
    if not url or not url.strip():
        return None
    url = url.strip()
    if "://" not in url:
        url = "https://" + url

    try:
        parsed = urlparse(url)
    except ValueError:
        # e.g. unbalanced [ in the netloc
        return None
    if parsed.scheme not in ("http", "https"):
        return None
    host = (parsed.hostname or "").lower()
    params = parse_qs(parsed.query)

    if host in SHORT_HOSTS:
        video_id = parsed.path.lstrip("/").split("/")[0]
    elif host in WATCH_HOSTS and parsed.path.rstrip("/") == "/watch":
        video_id = params.get("v", [""])[0]
    else:
        return None

    if not VIDEO_ID_PATTERN.fullmatch(video_id):
        return None

    return VideoRef(video_id=video_id, start_seconds=_start_seconds(params.get("t", [None])[0]))


def build_youtube_url(video_id: str, start_seconds: int = 0) -> str:
    url = f"https://youtu.be/{video_id}"
    return f"{url}?t={start_seconds}" if start_seconds > 0 else url
