"""Size directives for Google Photos base URLs."""

IMAGE_HOST_MARKER = "googleusercontent.com"


def is_photos_url(base_url: str) -> bool:
    return IMAGE_HOST_MARKER in base_url


def thumbnail_url(base_url: str, width: int, height: int) -> str:
    """Append a ``=wW-hH`` resize directive to a Google Photos base URL.

    URLs from other hosts are returned unchanged.
    """
    if is_photos_url(base_url):
        return f"{base_url}=w{width}-h{height}"
    return base_url


def high_res_url(base_url: str) -> str:
    """Append the ``=d`` full-resolution download directive."""
    if is_photos_url(base_url):
        return f"{base_url}=d"
    return base_url
