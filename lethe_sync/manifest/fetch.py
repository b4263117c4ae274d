"""
Remote manifest fetching for Lethe Sync.
"""

import logging
from typing import Optional

import requests

from ..core.constants import MANIFEST_URL
from ..exceptions import ManifestUnavailable
from .manifest import Manifest

DEFAULT_TIMEOUT = (10, 30)


def fetch_manifest(
    url: str = MANIFEST_URL,
    session: Optional[requests.Session] = None,
    timeout=DEFAULT_TIMEOUT,
    logger: Optional[logging.Logger] = None,
) -> Manifest:
    """
    Fetch and parse the manifest document.

    Args:
        url: Manifest URL
        session: requests session to use (a plain requests.get if None)
        timeout: (connect, read) timeout in seconds
        logger: Logger for diagnostics

    Returns:
        Parsed Manifest

    Raises:
        ManifestUnavailable: On network error, timeout, HTTP error or a
            malformed document
    """
    log = logger or logging.getLogger(__name__)
    http = session or requests

    try:
        response = http.get(url, timeout=timeout)
        response.raise_for_status()
        data = response.json()
    except requests.HTTPError as e:
        status = e.response.status_code if e.response is not None else "?"
        log.error("Error downloading manifest: HTTP %s", status)
        raise ManifestUnavailable(f"HTTP {status} fetching {url}") from e
    except requests.Timeout as e:
        log.error("Error downloading manifest: timed out")
        raise ManifestUnavailable(f"timed out fetching {url}") from e
    except requests.RequestException as e:
        log.error("Error downloading manifest: %s", e)
        raise ManifestUnavailable(f"could not fetch {url}: {e}") from e
    except ValueError as e:
        # requests' JSONDecodeError is a ValueError
        log.error("Error downloading manifest: invalid JSON (%s)", e)
        raise ManifestUnavailable(f"invalid JSON from {url}: {e}") from e

    try:
        manifest = Manifest.from_dict(data)
    except ManifestUnavailable as e:
        log.error("Error downloading manifest: %s", e)
        raise

    log.info(
        "Downloaded manifest: %d files, %d bytes",
        manifest.total_files, manifest.total_size,
    )
    return manifest
