"""
Slack Web API access for private channels.

All three endpoints used here (conversations.list, conversations.history and
conversations.replies) share the same cursor pagination contract, so a single
page iterator drives every fetch. Results are kept as the raw dicts Slack
returns and are written to archive entries as 4-space indented JSON, the
same layout the export itself uses.
"""

import json
from dataclasses import dataclass
from typing import Any, Dict, Iterator, List, Optional, TextIO

import requests

from exportkit.utils.logs import report
from exportkit.connectors.slack.errors import (
    ApiRejectionError,
    DecodeError,
    TransportError,
    WriteError,
)

logger = report.settings(__file__)

Record = Dict[str, Any]

DEFAULT_BASE_URL = "https://slack.com/api"
CHANNEL_PAGE_SIZE = 1000
HISTORY_PAGE_SIZE = 200
REPLIES_PAGE_SIZE = 200


@dataclass
class Page:
    """One decoded response of a paginated endpoint"""
    records: List[Record]
    next_cursor: str


class SlackClient:
    """Minimal bearer-token client for the Slack Web API."""

    def __init__(self,
                 token: str,
                 base_url: str = DEFAULT_BASE_URL,
                 timeout: Optional[float] = 30.0,
                 session: Optional[requests.Session] = None):
        self.token = token
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout or None
        self.session = session or requests.Session()

    def close(self) -> None:
        """Release pooled connections."""
        self.session.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
        return False

    # ------------------------------------------------------------------ #
    #  Single request                                                    #
    # ------------------------------------------------------------------ #
    def _get(self, method: str, params: Dict[str, Any]) -> Dict[str, Any]:
        """GET one API method and return the decoded, ok=true body."""
        url = f"{self.base_url}/{method}"
        headers = {"Authorization": f"Bearer {self.token}"}

        try:
            resp = self.session.get(url, params=params, headers=headers, timeout=self.timeout)
        except requests.exceptions.RequestException as exc:
            logger.error("Request to %s failed: %s", method, exc)
            raise TransportError(f"request to {method} failed: {exc}") from exc

        try:
            if not 200 <= resp.status_code < 300:
                logger.error("%s returned HTTP %s", method, resp.status_code)
                raise TransportError(
                    f"Slack API returned HTTP code {resp.status_code}",
                    status_code=resp.status_code,
                )
            try:
                data = resp.json()
            except ValueError as exc:
                logger.error("Could not decode %s response: %s", method, exc)
                raise DecodeError(f"malformed JSON from {method}: {exc}") from exc
        finally:
            resp.close()

        if not isinstance(data, dict):
            raise DecodeError(f"expected a JSON object from {method}, got {type(data).__name__}")

        if data.get("ok") is not True:
            error = data.get("error")
            logger.error("%s answered ok=false (error=%s)", method, error)
            message = "unexpected lack of ok=true in Slack API response. Is access token correct?"
            if error:
                message += f" (error: {error})"
            raise ApiRejectionError(message, error=error)

        return data

    # ------------------------------------------------------------------ #
    #  Pagination                                                        #
    # ------------------------------------------------------------------ #
    def iter_pages(self,
                   method: str,
                   key: str,
                   params: Dict[str, Any],
                   limit: int) -> Iterator[Page]:
        """Yield every page of a cursor-paginated method.

        The first request carries no cursor; iteration ends after the page
        whose ``next_cursor`` is empty. There is no page cap.
        """
        cursor = ""
        while True:
            query = {"limit": limit, **params}
            if cursor:
                query["cursor"] = cursor

            data = self._get(method, query)

            records = data.get(key, [])
            if not isinstance(records, list):
                raise DecodeError(f"'{key}' in {method} response is not a list")
            if not all(isinstance(r, dict) for r in records):
                raise DecodeError(f"'{key}' in {method} response holds a non-object record")

            metadata = data.get("response_metadata") or {}
            if not isinstance(metadata, dict):
                raise DecodeError(f"response_metadata in {method} response is not an object")
            cursor = metadata.get("next_cursor") or ""
            if not isinstance(cursor, str):
                raise DecodeError(f"next_cursor in {method} response is not a string")

            report.progress(logger, "Processed a batch of %d %s from %s.", len(records), key, method)
            yield Page(records=records, next_cursor=cursor)

            if not cursor:
                break

    def paginate(self,
                 method: str,
                 key: str,
                 params: Dict[str, Any],
                 limit: int) -> List[Record]:
        """Return the records of all pages, in API order."""
        accumulated: List[Record] = []
        for page in self.iter_pages(method, key, params, limit):
            accumulated.extend(page.records)
        return accumulated


# -------------- Serialization ------------------------------------------------

def write_records(records: List[Record], sink: TextIO) -> None:
    """Serialize records as a 4-space indented JSON array."""
    try:
        json.dump(records, sink, indent=4, ensure_ascii=False)
        sink.write("\n")
    except (OSError, TypeError, ValueError) as exc:
        logger.error("Failed to serialize %d records: %s", len(records), exc)
        raise WriteError(f"could not write records: {exc}") from exc


# -------------- Fetchers -----------------------------------------------------

def list_private_channels(client: SlackClient, limit: int = CHANNEL_PAGE_SIZE) -> List[Record]:
    """Return every private channel visible to the token's user."""
    report.progress(logger, "Fetching private channels from Slack API")
    channels = client.paginate(
        "conversations.list", "channels", {"types": "private_channel"}, limit
    )
    report.progress(logger, "Fetched %d private channels from Slack API.", len(channels))
    return channels


def is_thread_parent(message: Record) -> bool:
    """A message starts a thread when it carries a numeric reply_count."""
    count = message.get("reply_count")
    return isinstance(count, (int, float)) and not isinstance(count, bool)


def thread_parent_ids(messages: List[Record]) -> List[str]:
    """Return the ts of every thread parent, in message order."""
    ids = []
    for message in messages:
        if not is_thread_parent(message):
            continue
        ts = message.get("ts")
        if isinstance(ts, str) and ts:
            ids.append(ts)
    return ids


def fetch_channel_history(client: SlackClient,
                          channel_id: str,
                          sink: TextIO,
                          limit: int = HISTORY_PAGE_SIZE) -> List[str]:
    """Write a channel's full history to ``sink`` and return its thread parents' ts."""
    messages: List[Record] = []
    ts_ids: List[str] = []
    for page in client.iter_pages("conversations.history", "messages", {"channel": channel_id}, limit):
        messages.extend(page.records)
        ts_ids.extend(thread_parent_ids(page.records))

    logger.info("Channel %s: %d messages, %d threads", channel_id, len(messages), len(ts_ids))
    write_records(messages, sink)
    return ts_ids


def fetch_channel_replies(client: SlackClient,
                          channel_id: str,
                          thread_ids: List[str],
                          sink: TextIO,
                          limit: int = REPLIES_PAGE_SIZE) -> int:
    """Write every reply of every listed thread to ``sink``.

    Each thread is paginated on its own, starting from an empty cursor, and
    the results are concatenated in ``thread_ids`` order. Returns the number
    of messages written.
    """
    replies: List[Record] = []
    for ts in thread_ids:
        replies.extend(client.paginate(
            "conversations.replies", "messages", {"channel": channel_id, "ts": ts}, limit
        ))

    logger.info("Channel %s: %d reply messages across %d threads", channel_id, len(replies), len(thread_ids))
    write_records(replies, sink)
    return len(replies)
