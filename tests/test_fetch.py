import os

import httpx
import pytest

from scaffold.errors import FetchError, FilesystemError
from scaffold.fetch.fetcher import destination_for, fetch
from scaffold.fetch.session import create_fetch_session
from scaffold.observability.metrics import MetricsRegistry

URL = "https://templates.example.com/templates/1.txtar"
BODY = b"-- a.txt --\nhello\n"


class RecordingHandler:
    def __init__(self, status=200, body=BODY, error=None):
        self.status = status
        self.body = body
        self.error = error
        self.requests = []

    def __call__(self, request):
        self.requests.append(request)
        if self.error is not None:
            raise self.error(f"simulated {self.error.__name__}", request=request)
        return httpx.Response(self.status, content=self.body)


def _session(handler):
    return create_fetch_session(
        user_agent="test-agent",
        timeout=5.0,
        transport=httpx.MockTransport(handler),
    )


def test_fetch_writes_body_to_url_basename(tmp_path):
    handler = RecordingHandler()
    local = tmp_path / "cache" / "1.txtar"

    with _session(handler) as session:
        target = fetch(URL, local, session=session)

    assert target == local
    assert target.read_bytes() == BODY
    assert list((tmp_path / "cache").iterdir()) == [target]
    assert handler.requests[0].headers["User-Agent"] == "test-agent"


def test_fetched_file_gets_regular_permissions(tmp_path):
    umask = os.umask(0o022)
    try:
        with _session(RecordingHandler()) as session:
            target = fetch(URL, tmp_path / "1.txtar", session=session)
    finally:
        os.umask(umask)

    assert target.stat().st_mode & 0o777 == 0o644


def test_fetch_twice_performs_single_get(tmp_path):
    handler = RecordingHandler()
    metrics = MetricsRegistry()
    local = tmp_path / "1.txtar"

    with _session(handler) as session:
        fetch(URL, local, session=session, metrics=metrics)
        fetch(URL, local, session=session, metrics=metrics)

    assert len(handler.requests) == 1
    assert metrics.get("fetch_requests") == 1
    assert metrics.get("fetch_skips") == 1
    assert metrics.get("bytes_downloaded") == len(BODY)


def test_fetch_uses_url_name_not_local_name(tmp_path):
    handler = RecordingHandler()
    with _session(handler) as session:
        target = fetch(URL, tmp_path / "renamed.txt", session=session)
    assert target == tmp_path / "1.txtar"
    assert not (tmp_path / "renamed.txt").exists()


def test_fetch_overwrite_replaces_existing_file(tmp_path):
    local = tmp_path / "1.txtar"
    local.write_bytes(b"old")
    handler = RecordingHandler(body=b"new")

    with _session(handler) as session:
        fetch(URL, local, session=session, overwrite=True)

    assert local.read_bytes() == b"new"
    assert len(handler.requests) == 1


@pytest.mark.parametrize("status", [404, 500])
def test_http_error_status_raises_and_leaves_nothing(tmp_path, status):
    handler = RecordingHandler(status=status, body=b"not found")
    with _session(handler) as session:
        with pytest.raises(FetchError) as excinfo:
            fetch(URL, tmp_path / "1.txtar", session=session)
    assert str(status) in excinfo.value.reason
    assert list(tmp_path.iterdir()) == []


def test_transport_error_raises_fetch_error(tmp_path):
    handler = RecordingHandler(error=httpx.ConnectError)
    with _session(handler) as session:
        with pytest.raises(FetchError):
            fetch(URL, tmp_path / "1.txtar", session=session)
    assert list(tmp_path.iterdir()) == []


def test_failed_overwrite_keeps_previous_copy(tmp_path):
    local = tmp_path / "1.txtar"
    local.write_bytes(b"previous")
    handler = RecordingHandler(error=httpx.ReadTimeout)
    with _session(handler) as session:
        with pytest.raises(FetchError):
            fetch(URL, local, session=session, overwrite=True)
    assert local.read_bytes() == b"previous"
    assert list(tmp_path.iterdir()) == [local]


def test_unwritable_directory_raises_filesystem_error(tmp_path):
    (tmp_path / "cache").write_bytes(b"a file, not a directory")
    handler = RecordingHandler()
    with _session(handler) as session:
        with pytest.raises(FilesystemError):
            fetch(URL, tmp_path / "cache" / "1.txtar", session=session)
    assert handler.requests == []


def test_fetch_reads_file_urls(tmp_path):
    source = tmp_path / "mirror" / "template.txtar"
    source.parent.mkdir()
    source.write_bytes(BODY)
    handler = RecordingHandler()

    with _session(handler) as session:
        target = fetch(f"file://{source}", tmp_path / "cache" / "template.txtar", session=session)

    assert target.read_bytes() == BODY
    assert handler.requests == []


def test_missing_file_url_raises_fetch_error(tmp_path):
    with _session(RecordingHandler()) as session:
        with pytest.raises(FetchError):
            fetch(f"file://{tmp_path / 'absent.txtar'}", tmp_path / "cache" / "absent.txtar", session=session)
    assert list((tmp_path / "cache").iterdir()) == []


def test_destination_requires_a_file_name(tmp_path):
    with pytest.raises(FetchError):
        destination_for("https://templates.example.com/", tmp_path / "x")
    assert destination_for(URL + "?ref=main", tmp_path / "x") == tmp_path / "1.txtar"
