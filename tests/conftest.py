"""
Shared fixtures: a fake requests session that serves canned Slack API pages,
and a helper to build small export archives in a temp directory.
"""
import json
import zipfile

import pytest

from exportkit.utils.logs import report
from exportkit.connectors.slack.api import SlackClient


class FakeResponse:
    """Just enough of requests.Response for SlackClient."""

    def __init__(self, payload=None, status_code=200, text=None):
        self.status_code = status_code
        self.text = text if text is not None else json.dumps(payload)
        self.closed = False

    def json(self):
        return json.loads(self.text)

    def close(self):
        self.closed = True


class FakeSession:
    """Serve queued responses per API method and record every call."""

    def __init__(self, routes=None):
        self.routes = {method: list(pages) for method, pages in (routes or {}).items()}
        self.calls = []
        self.closed = False

    def get(self, url, params=None, headers=None, timeout=None):
        method = url.rsplit("/", 1)[-1]
        self.calls.append({"method": method, "params": dict(params or {}), "headers": dict(headers or {})})
        queue = self.routes.get(method)
        assert queue, f"unexpected request to {method}"
        response = queue.pop(0)
        if isinstance(response, Exception):
            raise response
        return response

    def close(self):
        self.closed = True

    def calls_to(self, method):
        return [c for c in self.calls if c["method"] == method]


def page(key, records, cursor=""):
    """Build an ok=true page response."""
    return FakeResponse({"ok": True, key: records, "response_metadata": {"next_cursor": cursor}})


@pytest.fixture(autouse=True)
def _quiet_progress(monkeypatch):
    monkeypatch.setattr(report, "_verbose", False)


@pytest.fixture
def api_page():
    return page


@pytest.fixture
def api_response():
    return FakeResponse


@pytest.fixture
def make_client():
    def _make(routes=None):
        session = FakeSession(routes)
        return SlackClient("xoxp-test", base_url="https://slack.test/api", session=session), session
    return _make


@pytest.fixture
def make_archive(tmp_path):
    """Write a zip with the given {name: bytes} entries and return its path."""
    def _make(entries, name="export.zip"):
        path = tmp_path / name
        with zipfile.ZipFile(path, "w", compression=zipfile.ZIP_DEFLATED) as zf:
            for entry_name, data in entries.items():
                info = zipfile.ZipInfo(entry_name, date_time=(2021, 3, 4, 5, 6, 8))
                info.compress_type = zipfile.ZIP_DEFLATED
                info.external_attr = 0o640 << 16
                info.comment = f"exported {entry_name}".encode("utf-8")
                zf.writestr(info, data)
        return path
    return _make
