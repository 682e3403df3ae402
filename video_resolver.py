import re
from dataclasses import dataclass
from typing import Optional
from urllib.parse import parse_qs, urlparse

from logging_config import get_logger

logger = get_logger(__name__)

YOUTUBE = "youtube"
HTML5 = "html5"

_DRIVE_FILE_PATH = re.compile(r"/file/d/([^/]+)/")


@dataclass(frozen=True)
class VideoDescriptor:
    kind: str
    locator: str
    originalUrl: str

    def to_dict(self) -> dict:
        return {"kind": self.kind, "locator": self.locator, "originalUrl": self.originalUrl}


def extract_youtube_id(url: str) -> Optional[str]:
    try:
        parsed = urlparse(url)
    except ValueError:
        return None
    host = (parsed.hostname or "").lower()
    if "youtube.com" in host:
        video_id = parse_qs(parsed.query).get("v", [None])[0]
        if video_id:
            return video_id
        parts = [part for part in parsed.path.split("/") if part]
        if "embed" in parts:
            index = parts.index("embed")
            if index + 1 < len(parts):
                return parts[index + 1]
    if host == "youtu.be":
        video_id = parsed.path.lstrip("/").split("/")[0]
        if video_id:
            return video_id
    return None


def google_drive_direct_url(url: str) -> Optional[str]:
    # https://drive.google.com/file/d/FILE_ID/view?usp=sharing
    try:
        parsed = urlparse(url)
    except ValueError:
        return None
    if "drive.google.com" not in (parsed.hostname or "").lower():
        return None
    match = _DRIVE_FILE_PATH.search(parsed.path)
    if not match:
        return None
    return f"https://drive.google.com/uc?export=download&id={match.group(1)}"


def resolve_video(url: str) -> VideoDescriptor:
    """Classify a submitted URL into something a client knows how to play."""
    url = url.strip()
    youtube_id = extract_youtube_id(url)
    if youtube_id:
        logger.debug(f"Resolved {url} as YouTube video {youtube_id}")
        return VideoDescriptor(kind=YOUTUBE, locator=youtube_id, originalUrl=url)
    drive_url = google_drive_direct_url(url)
    if drive_url:
        logger.debug(f"Resolved {url} as Google Drive download {drive_url}")
        return VideoDescriptor(kind=HTML5, locator=drive_url, originalUrl=url)
    # direct media file or any other host that serves the file itself
    return VideoDescriptor(kind=HTML5, locator=url, originalUrl=url)
