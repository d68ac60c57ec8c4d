"""Chained generation: each step feeds on the previous step's video.

Each workflow keeps its temporary files in a private directory under the
chain's work directory, removed on every exit path. Uploaded assets are
deleted when the workflow ends. Both are best-effort and never mask the
error that ended the workflow.
"""
from __future__ import annotations

import logging
import os
import shutil
import tempfile
import threading
from contextlib import ExitStack
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Optional

from .exceptions import LocalIOError, VidaiError
from .models import Generation, GenerationOptions
from .splicer import FFmpegSplicer, remove_quietly, write_manifest

if TYPE_CHECKING:
    from .client import Vidai

logger = logging.getLogger("vidai")


@dataclass
class GenerateResult:
    generation: Generation
    output_path: Optional[Path] = None


def _read(path: str | Path) -> bytes:
    try:
        return Path(path).read_bytes()
    except OSError as exc:
        raise LocalIOError(f"couldn't read {path}: {exc}") from exc


def _copy(src: str | Path, dst: str | Path) -> None:
    try:
        shutil.copyfile(src, dst)
    except OSError as exc:
        raise LocalIOError(f"couldn't copy {src} to {dst}: {exc}") from exc


class Chain:
    """Multi-step workflows on top of a :class:`~vidai.client.Vidai` client.

    Args:
        client: Client used for uploads, tasks and downloads. Only
            :meth:`loop` works without one.
        splicer: Media splicer. Defaults to :class:`FFmpegSplicer`.
        work_dir: Where intermediate frames, clips and manifests go.
            Defaults to the system temp directory.
    """

    def __init__(
        self,
        client: Optional["Vidai"] = None,
        splicer: Optional[FFmpegSplicer] = None,
        work_dir: str | Path | None = None,
    ):
        self._client = client
        self._splicer = splicer or FFmpegSplicer()
        self.work_dir = Path(work_dir or tempfile.gettempdir())

    def generate(
        self,
        image: str | Path | None = None,
        text: str = "",
        extend: int = 0,
        output: str | Path | None = None,
        options: Optional[GenerationOptions] = None,
        cancel: threading.Event | None = None,
    ) -> GenerateResult:
        """Generate a clip from an image and/or a prompt, then extend it.

        Each of the *extend* extra steps submits a continuation whose input
        is the previous step's video. The last video is downloaded to
        *output*; when *output* is omitted but the clip was extended, a new
        uniquely named file in the work directory is used instead.

        Raises:
            VidaiError: if neither *image* nor *text* is given, or any
                upload, generation or download fails.
        """
        if not image and not text:
            raise VidaiError("image or text is required")
        if extend < 0:
            raise VidaiError("extend must be >= 0")
        options = options or GenerationOptions()

        with ExitStack() as cleanup:
            image_url = None
            name = ""
            if image:
                name = Path(image).name
                asset = self.client.assets.upload(name, _read(image), cancel)
                cleanup.callback(self._delete_asset, asset.id)
                image_url = asset.url

            gen = self.client.tasks.generate(
                options.request(prompt=text, image_url=image_url, asset_name=name), cancel
            )
            for i in range(extend):
                logger.info("extending %d/%d from task=%s", i + 1, extend, gen.id)
                gen = self.client.tasks.generate(options.request(video_url=gen.url), cancel)

            path = Path(output) if output else None
            if path is None and extend > 0:
                base = Path(image).stem if image else "vidai"
                path = self._output_path(base)
            if path is not None:
                self.client.assets.download(gen.url, path, cancel)

        return GenerateResult(generation=gen, output_path=path)

    def extend(
        self,
        input_path: str | Path,
        n: int,
        output: str | Path | None = None,
        options: Optional[GenerationOptions] = None,
        cancel: threading.Event | None = None,
    ) -> list[str]:
        """Extend an existing video *n* times from its last frame.

        Every step extracts the final frame of the current clip, uploads
        it, generates a fresh clip from it and downloads the result, which
        becomes the current clip. With *output* set the original and all
        generated clips are joined in order without re-encoding.

        Returns:
            The URL of every generated clip, in order.
        """
        if n < 1:
            raise VidaiError("n must be greater than 0")
        options = options or GenerationOptions()
        base = Path(input_path).stem
        assets = self.client.assets
        urls: list[str] = []

        with ExitStack() as cleanup:
            scratch = self._scratch(cleanup, base)
            segment = scratch / f"{base}-segment-0.mp4"
            _copy(input_path, segment)
            segments = [segment]

            for i in range(n):
                logger.info("extend step %d/%d from %s", i + 1, n, segment.name)
                frame = scratch / f"{base}-frame-{i}.jpg"
                self._splicer.extract_last_frame(segment, frame, cancel)

                asset = assets.upload(frame.name, _read(frame), cancel)
                cleanup.callback(self._delete_asset, asset.id)
                gen = self.client.tasks.generate(
                    options.request(image_url=asset.url, asset_name=frame.name), cancel
                )
                urls.append(gen.url)
                remove_quietly(frame)

                segment = scratch / f"{base}-segment-{i + 1}.mp4"
                assets.download(gen.url, segment, cancel)
                segments.append(segment)

            if output:
                manifest = scratch / f"{base}-list.txt"
                write_manifest(segments, manifest)
                self._splicer.concatenate_manifest(manifest, output, cancel=cancel)
                logger.info("joined %d segments into %s", len(segments), output)

        return urls

    def loop(self, input_path: str | Path, output: str | Path, cancel: threading.Event | None = None) -> Path:
        """Append the reversed clip to the original, producing a boomerang loop."""
        input_path = Path(input_path)
        with ExitStack() as cleanup:
            scratch = self._scratch(cleanup, input_path.stem)
            reversed_path = scratch / f"{input_path.stem}-reversed{input_path.suffix or '.mp4'}"
            self._splicer.reverse(input_path, reversed_path, cancel)
            return self._splicer.concatenate([input_path, reversed_path], output, cancel=cancel)

    @property
    def client(self) -> "Vidai":
        if self._client is None:
            raise VidaiError("this workflow needs an API client")
        return self._client

    def _scratch(self, cleanup: ExitStack, base: str) -> Path:
        """Private directory for one workflow's intermediate files, removed with *cleanup*."""
        try:
            path = Path(tempfile.mkdtemp(prefix=f"{base}-", dir=self.work_dir))
        except OSError as exc:
            raise LocalIOError(f"couldn't create a work directory in {self.work_dir}: {exc}") from exc
        cleanup.callback(shutil.rmtree, path, ignore_errors=True)
        return path

    def _output_path(self, base: str) -> Path:
        try:
            fd, name = tempfile.mkstemp(prefix=f"{base}-", suffix=".mp4", dir=self.work_dir)
        except OSError as exc:
            raise LocalIOError(f"couldn't create an output file in {self.work_dir}: {exc}") from exc
        os.close(fd)
        return Path(name)

    def _delete_asset(self, asset_id: str) -> None:
        # Single attempt without cancel: runs after the workflow has ended.
        try:
            self.client.assets.delete(asset_id, max_attempts=1)
        except VidaiError as exc:
            logger.warning("couldn't delete asset %s: %s", asset_id, exc)
