import json

import httpx
import pytest

from datsite.archive import HttpArchive, LocalArchive, clean_path
from datsite.errors import (
    ArchiveError,
    ArchiveExistsError,
    ArchiveNotFoundError,
    ArchiveTimeoutError,
    MissingParameterError,
    ReadOnlyArchiveError,
)

GATEWAY = "http://gateway.test"


def test_clean_path():
    assert clean_path("profile.json") == "/profile.json"
    assert clean_path("/broadcasts//1.json") == "/broadcasts/1.json"
    with pytest.raises(ArchiveError):
        clean_path("/../etc/passwd")


def test_local_archive_needs_url(tmp_path):
    with pytest.raises(MissingParameterError):
        LocalArchive(tmp_path, None)


@pytest.mark.asyncio
async def test_local_archive_read_write(tmp_path):
    archive = LocalArchive(tmp_path, "dat://local")
    await archive.write_file("/profile.json", '{"name": "Alice"}')

    assert await archive.read_file("/profile.json") == b'{"name": "Alice"}'
    assert await archive.read_file("/profile.json", encoding="utf-8") == '{"name": "Alice"}'
    assert (tmp_path / "profile.json").exists()


@pytest.mark.asyncio
async def test_local_archive_missing_file(tmp_path):
    archive = LocalArchive(tmp_path, "dat://local")
    with pytest.raises(ArchiveNotFoundError):
        await archive.read_file("/profile.json")
    with pytest.raises(ArchiveNotFoundError):
        await archive.write_file("/broadcasts/1.json", "{}")


@pytest.mark.asyncio
async def test_local_archive_directories_and_listing(tmp_path):
    archive = LocalArchive(tmp_path, "dat://local")
    await archive.create_directory("/broadcasts")
    with pytest.raises(ArchiveExistsError):
        await archive.create_directory("/broadcasts")

    await archive.write_file("/broadcasts/2.json", "{}")
    await archive.write_file("/broadcasts/1.json", "{}")
    files = await archive.list_files("/broadcasts")

    assert list(files) == ["1.json", "2.json"]
    assert files["1.json"].name == "/broadcasts/1.json"
    assert files["1.json"].size == 2

    with pytest.raises(ArchiveNotFoundError):
        await archive.list_files("/nowhere")


@pytest.mark.asyncio
async def test_local_archive_stat(tmp_path):
    archive = LocalArchive(tmp_path, "dat://local")
    await archive.write_file("/profile.json", "{}")
    info = await archive.stat("profile.json")
    assert info.name == "/profile.json"
    assert info.mtime is not None
    assert not info.is_directory


def make_http_archive(handler):
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return HttpArchive("dat://abc123/", GATEWAY, client=client)


def gateway_handler(request):
    if request.url.path == "/abc123/profile.json":
        return httpx.Response(200, json={"name": "Bob"}, headers={"last-modified": "Wed, 21 Oct 2015 07:28:00 GMT"})
    if request.url.path == "/abc123/broadcasts/":
        assert request.headers["accept"] == "application/json"
        return httpx.Response(200, json=[
            {"name": "1000.json", "size": 10, "mtime": 1000},
            {"name": "2000.json", "size": 12},
            {"size": 1},
        ])
    return httpx.Response(404)


def test_http_archive_rejects_non_urls():
    with pytest.raises(MissingParameterError):
        HttpArchive("abc123", GATEWAY)


@pytest.mark.asyncio
async def test_http_archive_reads_through_gateway():
    archive = make_http_archive(gateway_handler)
    assert archive.base_url == "http://gateway.test/abc123"

    raw = await archive.read_file("/profile.json", encoding="utf-8")
    assert json.loads(raw) == {"name": "Bob"}

    info = await archive.stat("/profile.json")
    assert info.name == "/profile.json"
    assert info.mtime.year == 2015


@pytest.mark.asyncio
async def test_http_archive_lists_directory():
    archive = make_http_archive(gateway_handler)
    files = await archive.list_files("/broadcasts")

    assert list(files) == ["1000.json", "2000.json"]
    assert files["1000.json"].name == "/broadcasts/1000.json"
    assert files["1000.json"].mtime is not None
    assert files["2000.json"].size == 12


@pytest.mark.asyncio
async def test_http_archive_error_mapping():
    def handler(request):
        if request.url.path.endswith("slow.json"):
            raise httpx.ReadTimeout("timed out", request=request)
        if request.url.path.endswith("down.json"):
            raise httpx.ConnectError("refused", request=request)
        if request.url.path.endswith("broken.json"):
            return httpx.Response(500)
        return httpx.Response(404)

    archive = make_http_archive(handler)
    with pytest.raises(ArchiveTimeoutError):
        await archive.read_file("/slow.json")
    with pytest.raises(ArchiveError):
        await archive.read_file("/down.json")
    with pytest.raises(ArchiveError):
        await archive.read_file("/broken.json")
    with pytest.raises(ArchiveNotFoundError):
        await archive.read_file("/missing.json")


@pytest.mark.asyncio
async def test_http_archive_is_read_only():
    archive = make_http_archive(gateway_handler)
    with pytest.raises(ReadOnlyArchiveError):
        await archive.write_file("/profile.json", "{}")
    with pytest.raises(ReadOnlyArchiveError):
        await archive.create_directory("/broadcasts")


def test_http_archive_rejection_keeps_url_for_repr():
    archive = HttpArchive.__new__(HttpArchive)
    with pytest.raises(MissingParameterError):
        archive.__init__("bob.example", GATEWAY)
    assert archive.url == "bob.example"
    assert repr(archive) == "HttpArchive('bob.example')"
