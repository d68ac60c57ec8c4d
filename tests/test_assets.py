"""
Unit Tests for AssetsResource
"""

import hashlib

import pytest

from conftest import API_BASE, PROFILE, FakeTransport, reply
from vidai._auth import TeamScope
from vidai.exceptions import LocalIOError, PermanentRequestError, VidaiError
from vidai.resources.assets import AssetsResource, part_etag


def _upload_script():
    return [
        reply(payload=PROFILE),
        reply(payload={"id": "up-main", "uploadUrls": ["https://storage.test/put-main?sig=1"]}),
        reply(content=b""),
        reply(payload={"url": "https://cdn.test/car.jpg"}),
        reply(payload={"id": "up-preview", "uploadUrls": ["https://storage.test/put-preview?sig=2"]}),
        reply(content=b""),
        reply(payload={"url": "https://cdn.test/car-preview.jpg"}),
        reply(payload={"dataset": {"id": "ds-1"}}),
    ]


@pytest.fixture
def assets(make_http, transport):
    return AssetsResource(make_http(transport), TeamScope())


def test_part_etag_is_md5_hex():
    data = b"\xff\xd8\xff image bytes"
    assert part_etag(data) == hashlib.md5(data).hexdigest()
    assert part_etag(data) == part_etag(bytes(data))


def test_upload_protocol(assets, transport):
    transport.queue(*_upload_script())
    data = b"jpeg-bytes"

    asset = assets.upload("car.jpg", data)

    assert asset.id == "ds-1"
    assert asset.url == "https://cdn.test/car.jpg"
    assert asset.preview_url == "https://cdn.test/car-preview.jpg"

    assert [(c.method, c.url) for c in transport.calls] == [
        ("GET", API_BASE + "profile"),
        ("POST", API_BASE + "uploads"),
        ("PUT", "https://storage.test/put-main?sig=1"),
        ("POST", API_BASE + "uploads/up-main/complete"),
        ("POST", API_BASE + "uploads"),
        ("PUT", "https://storage.test/put-preview?sig=2"),
        ("POST", API_BASE + "uploads/up-preview/complete"),
        ("POST", API_BASE + "datasets"),
    ]

    assert transport.json_body(1) == {"filename": "car.jpg", "numberOfParts": 1, "type": "DATASET"}
    assert transport.json_body(4)["type"] == "DATASET_PREVIEW"

    put = transport.calls[2]
    assert put.body == data
    assert put.headers["content-type"] == "image/jpeg"
    assert "authorization" not in put.headers

    assert transport.json_body(3) == {"parts": [{"PartNumber": 1, "ETag": hashlib.md5(data).hexdigest()}]}

    dataset = transport.json_body(7)
    assert dataset["uploadId"] == "up-main"
    assert dataset["previewUploadIds"] == ["up-preview"]
    assert dataset["name"] == "car.jpg"
    assert dataset["asTeamId"] == 42


def test_upload_empty_url_list(assets, transport):
    transport.queue(reply(payload=PROFILE), reply(payload={"id": "up-main", "uploadUrls": []}))

    with pytest.raises(VidaiError, match="no upload urls"):
        assets.upload("car.jpg", b"x")


def test_upload_empty_completed_url(assets, transport):
    transport.queue(
        reply(payload=PROFILE),
        reply(payload={"id": "up-main", "uploadUrls": ["https://storage.test/put"]}),
        reply(content=b""),
        reply(payload={"url": ""}),
    )

    with pytest.raises(VidaiError, match="empty url"):
        assets.upload("car.png", b"x")


def test_upload_empty_asset_id(assets, transport):
    script = _upload_script()
    script[-1] = reply(payload={"dataset": {"id": ""}})
    transport.queue(*script)

    with pytest.raises(VidaiError, match="empty asset id"):
        assets.upload("car.jpg", b"x")


def test_delete(assets, transport):
    transport.queue(reply(payload={"success": True}))

    assets.delete("ds-1")

    assert transport.calls[0].method == "DELETE"
    assert transport.calls[0].url == API_BASE + "assets/ds-1"


def test_delete_not_successful(assets, transport):
    transport.queue(reply(payload={"success": False}))

    with pytest.raises(VidaiError):
        assets.delete("ds-1")


def test_delete_http_failure(assets, transport):
    transport.queue(reply(404, content=b"gone"))

    with pytest.raises(PermanentRequestError):
        assets.delete("ds-1")


def test_download_writes_file(assets, transport, tmp_path):
    transport.queue(reply(content=b"mp4-bytes"))
    target = tmp_path / "out" / "clip.mp4"

    path = assets.download("https://cdn.test/clip.mp4", target)

    assert path == target
    assert target.read_bytes() == b"mp4-bytes"
    assert "authorization" not in transport.calls[0].headers


def test_download_write_failure(assets, transport, tmp_path):
    transport.queue(reply(content=b"mp4-bytes"))
    blocker = tmp_path / "blocker"
    blocker.write_text("file")

    with pytest.raises(LocalIOError):
        assets.download("https://cdn.test/clip.mp4", blocker / "clip.mp4")
