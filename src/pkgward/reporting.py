"""Optional reporting of installed-package changes to a collector.

A report is one form-encoded POST. The collector is informational only:
timeouts and HTTP errors are logged as warnings and never fail the
operation that triggered the report.
"""

from __future__ import annotations

import logging
import socket
from typing import Iterable

import httpx

from pkgward.store.installed import current_user

logger = logging.getLogger(__name__)

REPORT_PATH = "process_update"


def send_update(
    server: str,
    *,
    installed: Iterable[str] = (),
    removed: Iterable[str] = (),
    currently_installed: Iterable[str] = (),
    timeout: float = 10.0,
    client: httpx.Client | None = None,
) -> bool:
    """POST a change report; return True if the server accepted it."""
    url = server.rstrip("/") + "/" + REPORT_PATH
    data = {
        "client": socket.getfqdn(),
        "user": current_user(),
        "newly_installed": "\n".join(installed),
        "removed": "\n".join(removed),
        "currently_installed": "\n".join(currently_installed),
    }
    owned = client is None
    client = client or httpx.Client(timeout=timeout)
    try:
        resp = client.post(url, data=data, timeout=timeout)
        resp.raise_for_status()
    except httpx.TimeoutException:
        logger.warning("Timed out sending update to %s after %ss", url, timeout)
        return False
    except httpx.HTTPStatusError as exc:
        logger.warning("HTTP %d from report server %s", exc.response.status_code, url)
        return False
    except httpx.RequestError as exc:
        logger.warning("Failed to send update to %s: %s", url, exc)
        return False
    finally:
        if owned:
            client.close()
    logger.debug("Sent update to %s", url)
    return True
