import logging

import requests

logger = logging.getLogger(__name__)

USER_AGENT = "mask-api/1.0"


class ImageFetchError(Exception):
    """Remote image could not be retrieved (transport failure or non-2xx status)."""


def clean_url(value) -> str:
    # URLs pasted from spreadsheets often carry a leading "=" from formula cells.
    return str(value or "").strip().lstrip("=")


def fetch_image_bytes(url: str, timeout: float = 30.0) -> bytes:
    # Blocking; API handlers run this in a worker thread.
    try:
        response = requests.get(url, timeout=timeout, headers={"User-Agent": USER_AGENT})
    except requests.RequestException as exc:
        logger.warning("Fetching %s failed: %s", url, exc)
        raise ImageFetchError("Failed to fetch image") from exc

    if not response.ok:
        logger.warning("Fetching %s returned HTTP %s", url, response.status_code)
        raise ImageFetchError("Failed to fetch image")
    return response.content
