"""Checks against the deployed public site, used when the content store is not configured."""
import logging
from typing import Optional

import requests

from oksnap.core.config import QUOTA_STORE_TIMEOUT

logger = logging.getLogger(__name__)

USER_AGENT = "OK-Snap-Blog-Checker"


def url_exists(url: str, session: Optional[requests.Session] = None, timeout: float = QUOTA_STORE_TIMEOUT) -> bool:
    """HEAD the URL. Any transport failure counts as "does not exist"."""
    http = session or requests
    try:
        r = http.head(url, headers={"User-Agent": USER_AGENT}, timeout=timeout, allow_redirects=True)
    except requests.exceptions.RequestException as e:
        logger.info("[public-site] HEAD %s failed: %s", url, e)
        return False
    return r.ok


def blog_image_url(public_site_url: str, slug: str) -> str:
    return f"{public_site_url.rstrip('/')}/images/blogs/{slug}.png"
