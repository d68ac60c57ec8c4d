from __future__ import annotations

import hashlib
import logging
import threading
from pathlib import Path
from typing import TYPE_CHECKING, Optional

from .._http import UploadFile
from ..exceptions import LocalIOError, VidaiError
from ..models import Asset, DatasetEnvelope, DeleteResult, UploadComplete, UploadSlot

if TYPE_CHECKING:
    from .._auth import TeamScope
    from .._http import HttpClient

logger = logging.getLogger("vidai")

# The primary upload and its preview go through the same three-step protocol.
_UPLOAD_TYPES = ("DATASET", "DATASET_PREVIEW")


def part_etag(data: bytes) -> str:
    """Checksum sent when completing a single-part upload (hex MD5)."""
    return hashlib.md5(data).hexdigest()


class AssetsResource:
    """Accessed via client.assets — input uploads, deletion and result downloads."""

    def __init__(self, http: "HttpClient", scope: "TeamScope"):
        self._http = http
        self._scope = scope

    def upload(self, name: str, data: bytes, cancel: threading.Event | None = None) -> Asset:
        """Upload an image and register it as a dataset asset.

        Args:
            name: File name, e.g. ``"car.jpg"``. Its extension picks the
                upload content type.
            data: Raw file bytes.
            cancel: Optional event that aborts the upload at the next wait
                point.

        Returns:
            The new :class:`~vidai.models.Asset`. ``asset.url`` is what
            generation requests reference; pass ``asset.id`` to
            :meth:`delete` when it is no longer needed.

        Raises:
            VidaiError: if the service returns an empty upload URL, asset
                URL or asset id.
        """
        team_id = self._scope.resolve(self._http, cancel)
        upload = UploadFile(data=data, extension=Path(name).suffix)
        etag = part_etag(data)

        urls: dict[str, str] = {}
        ids: dict[str, str] = {}
        for upload_type in _UPLOAD_TYPES:
            slot = self._http.post(
                "uploads",
                json={"filename": name, "numberOfParts": 1, "type": upload_type},
                shape=UploadSlot,
                cancel=cancel,
            )
            if not slot.upload_urls or not slot.upload_urls[0]:
                raise VidaiError(f"no upload urls returned for {upload_type}")
            if not slot.id:
                raise VidaiError(f"no upload id returned for {upload_type}")

            self._http.request("PUT", slot.upload_urls[0], body=upload, cancel=cancel)

            done = self._http.post(
                f"uploads/{slot.id}/complete",
                json={"parts": [{"PartNumber": 1, "ETag": etag}]},
                shape=UploadComplete,
                cancel=cancel,
            )
            if not done.url:
                raise VidaiError(f"empty url for upload type {upload_type}")
            logger.debug("upload complete type=%s url=%s", upload_type, done.url)
            urls[upload_type] = done.url
            ids[upload_type] = slot.id

        envelope = self._http.post(
            "datasets",
            json={
                "fileCount": 1,
                "name": name,
                "uploadId": ids["DATASET"],
                "previewUploadIds": [ids["DATASET_PREVIEW"]],
                "type": {"name": "image", "type": "image", "isDirectory": False},
                "asTeamId": team_id,
            },
            shape=DatasetEnvelope,
            cancel=cancel,
        )
        if not envelope.dataset.id:
            raise VidaiError("empty asset id returned")
        asset = Asset(id=envelope.dataset.id, url=urls["DATASET"], preview_url=urls["DATASET_PREVIEW"])
        logger.info("uploaded %s as asset %s", name, asset.id)
        return asset

    def delete(
        self,
        asset_id: str,
        cancel: threading.Event | None = None,
        max_attempts: Optional[int] = None,
    ) -> None:
        """Delete an uploaded asset.

        *max_attempts* caps the retries for this call; cleanup passes 1 so
        a failing delete never waits out the server backoff.

        Raises:
            VidaiError: if the request fails or the service reports
                ``success: false``. Cleanup callers are expected to log
                and carry on.
        """
        result = self._http.delete(
            f"assets/{asset_id}", shape=DeleteResult, cancel=cancel, max_attempts=max_attempts
        )
        if not result.success:
            raise VidaiError(f"couldn't delete asset {asset_id}")
        logger.debug("deleted asset %s", asset_id)

    def download(self, url: str, path: str | Path, cancel: threading.Event | None = None) -> Path:
        """Fetch *url* and write it to *path*, creating parent directories.

        Raises:
            LocalIOError: if the file cannot be written.
        """
        content = self._http.request("GET", url, cancel=cancel)
        path = Path(path)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(content)
        except OSError as exc:
            raise LocalIOError(f"couldn't write {path}: {exc}") from exc
        logger.info("downloaded %s (%d bytes)", path, len(content))
        return path
