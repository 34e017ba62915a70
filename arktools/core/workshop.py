"""Steam Workshop published file details lookup."""

from __future__ import annotations

import json
import urllib.error
import urllib.parse
import urllib.request
from dataclasses import dataclass
from typing import Any, Optional

from arktools.common.constants import PUBLISHED_FILE_DETAILS_URL
from arktools.common.errors import WorkshopLookupError
from arktools.common.logging_config import get_logger

_log = get_logger(__name__)


@dataclass(frozen=True)
class PublishedFileDetails:
    item_id: int
    title: str
    time_updated: int


def _post_form(url: str, fields: dict, timeout: float) -> Any:
    body = urllib.parse.urlencode(fields).encode("ascii")
    request = urllib.request.Request(
        url,
        data=body,
        headers={"Content-Type": "application/x-www-form-urlencoded"},
        method="POST",
    )
    with urllib.request.urlopen(request, timeout=timeout) as response:  # noqa: S310
        return json.loads(response.read().decode("utf-8"))


def parse_published_file_details(payload: Any, item_id: int) -> PublishedFileDetails:
    """Extract the first entry of a GetPublishedFileDetails response."""
    try:
        details = payload["response"]["publishedfiledetails"]
    except (KeyError, TypeError) as exc:
        raise WorkshopLookupError(
            f"get publish file detail failure: unexpected response for {item_id}", item_id
        ) from exc
    if not isinstance(details, list) or not details:
        raise WorkshopLookupError("get publish file detail failure: length 0", item_id)

    entry = details[0]
    if not isinstance(entry, dict):
        raise WorkshopLookupError(f"get publish file detail failure: malformed entry for {item_id}", item_id)
    result = entry.get("result")
    if result != 1:
        raise WorkshopLookupError(f"get publish file detail failure: result: {result}", item_id)

    try:
        return PublishedFileDetails(
            item_id=item_id,
            title=str(entry.get("title", "")),
            time_updated=int(entry.get("time_updated", 0)),
        )
    except (TypeError, ValueError) as exc:
        raise WorkshopLookupError(f"invalid time_updated for {item_id}: {exc}", item_id) from exc


def fetch_published_file_details(
    item_id: int,
    url: Optional[str] = None,
    timeout: float = 30.0,
) -> PublishedFileDetails:
    """Look up title and last update time of a workshop item.

    Raises:
        WorkshopLookupError: On transport errors, non-JSON replies, an empty
            detail list or a result code other than 1
    """
    fields = {"itemcount": "1", "publishedfileids[0]": str(item_id)}
    try:
        payload = _post_form(url or PUBLISHED_FILE_DETAILS_URL, fields, timeout)
    except (urllib.error.URLError, TimeoutError, ValueError) as exc:
        raise WorkshopLookupError(f"published file details request for {item_id} failed: {exc}", item_id) from exc

    details = parse_published_file_details(payload, item_id)
    _log.debug("MOD[%s](%s) GetPublishedFileDetails updated:%s", item_id, details.title, details.time_updated)
    return details


__all__ = ["PublishedFileDetails", "parse_published_file_details", "fetch_published_file_details"]
