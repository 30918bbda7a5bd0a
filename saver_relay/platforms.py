import re
from typing import Optional

# same patterns the browser content script watches for
PLATFORM_PATTERNS = {
    "instagram": re.compile(r"instagram\.com/(?:reel|reels|p)/([^/?]+)"),
    "youtube": re.compile(r"youtube\.com/watch\?v=([^&]+)|youtube\.com/shorts/([^/?]+)"),
    "twitter": re.compile(r"(?:twitter|x)\.com/\w+/status/(\d+)"),
    "tiktok": re.compile(r"tiktok\.com/@[\w.]+/video/(\d+)"),
}


def detect_platform(url: Optional[str]) -> Optional[str]:
    """Name of the platform a post URL belongs to, or None if it is not a supported post."""
    if not url:
        return None
    for platform, pattern in PLATFORM_PATTERNS.items():
        if pattern.search(url):
            return platform
    return None
