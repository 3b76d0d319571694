"""Tests for single-item downloads."""

import pytest

from tubezip.core.single import SingleDownload
from tubezip.exceptions import RetrievalError, SetupError
from tubezip.models.item import Mode
from tubezip.storage.session import SessionDirectory


@pytest.fixture
def make_download(tmp_path, fake_runner, batch_logger):
    def factory(url, title=None, mode=Mode.AUDIO):
        return SingleDownload(
            url,
            mode,
            fake_runner,
            SessionDirectory(str(tmp_path)),
            title=title,
            batch_logger=batch_logger,
            chunk_size=4,
        )

    return factory


@pytest.mark.asyncio
async def test_fetch_and_stream(make_download):
    download = make_download("ok:Song:m4a")
    assert await download.fetch() == "Song.m4a"
    assert download.size == len(b"media-bytes")
    assert download.session.exists

    chunks = []

    async def send(data: bytes) -> None:
        chunks.append(data)

    sent = await download.stream(send)

    assert b"".join(chunks) == b"media-bytes"
    assert sent == len(b"media-bytes")
    assert len(chunks) > 1
    assert not download.session.exists


@pytest.mark.asyncio
async def test_client_title_wins(make_download):
    download = make_download("ok:Song:m4a", title="My: Track")
    assert await download.fetch() == "My_ Track.m4a"
    download.cleanup()


@pytest.mark.asyncio
async def test_failed_run_removes_session(make_download):
    download = make_download("fail")
    with pytest.raises(RetrievalError, match="Video unavailable"):
        await download.fetch()
    assert not download.session.exists


@pytest.mark.asyncio
async def test_missing_file(make_download):
    download = make_download("nofile")
    with pytest.raises(RetrievalError, match="File not found after download."):
        await download.fetch()
    assert not download.session.exists


@pytest.mark.asyncio
async def test_stream_requires_fetch(make_download):
    async def send(data: bytes) -> None:
        pass

    with pytest.raises(SetupError):
        await make_download("ok:Song").stream(send)


@pytest.mark.asyncio
async def test_broken_sink_still_removes_session(make_download):
    download = make_download("ok:Song")
    await download.fetch()

    async def send(data: bytes) -> None:
        raise ConnectionResetError("gone")

    with pytest.raises(ConnectionResetError):
        await download.stream(send)
    assert not download.session.exists
