"""
FFmpeg Splicer - last-frame extraction, reversal and lossless concatenation
"""
from __future__ import annotations

import logging
import os
import shutil
import subprocess
import tempfile
import threading
from pathlib import Path
from typing import Iterable, Sequence

from .exceptions import LocalIOError, OperationCancelled, SplicerError

logger = logging.getLogger("vidai")

_CANCEL_CHECK_INTERVAL = 0.5


def write_manifest(paths: Iterable[str | Path], manifest_path: str | Path) -> Path:
    """Write an ffmpeg concat-demuxer list, one ``file '...'`` line per clip.

    Clips sitting next to the manifest are listed by file name, others by
    absolute path.

    Raises:
        LocalIOError: if the manifest cannot be written.
    """
    manifest_path = Path(manifest_path)
    manifest_dir = manifest_path.parent.resolve()
    lines = []
    for path in paths:
        path = Path(path)
        entry = path.name if path.parent.resolve() == manifest_dir else str(path.resolve())
        escaped = entry.replace("'", "'\\''")
        lines.append(f"file '{escaped}'\n")
    try:
        manifest_path.write_text("".join(lines))
    except OSError as exc:
        raise LocalIOError(f"couldn't write manifest {manifest_path}: {exc}") from exc
    return manifest_path


def remove_quietly(path: str | Path) -> None:
    """Best-effort file removal: a failure is logged, never raised."""
    try:
        os.remove(path)
    except FileNotFoundError:
        pass
    except OSError as exc:
        logger.warning("couldn't remove %s: %s", path, exc)


class FFmpegSplicer:
    """
    Media operations the chain needs, run through the ``ffmpeg`` binary.

    Segments passed to :meth:`concatenate` must share codec and container
    parameters; they are stream-copied unless ``reencode=True``.
    """

    # Error codes
    ERROR_FFMPEG_NOT_FOUND = "FFMPEG_NOT_FOUND"
    ERROR_INPUT_FILE_NOT_FOUND = "INPUT_FILE_NOT_FOUND"
    ERROR_COMMAND_FAILED = "COMMAND_FAILED"

    def __init__(self, ffmpeg_path: str = "ffmpeg"):
        self.ffmpeg_path = ffmpeg_path

    def extract_last_frame(
        self,
        input_path: str | Path,
        output_path: str | Path,
        cancel: threading.Event | None = None,
    ) -> Path:
        """
        Write the final frame of *input_path* to the image *output_path*.

        Seeks to the last second and keeps overwriting the same image, so
        only the last decoded frame remains.
        """
        self._require_input(input_path)
        cmd = [
            self.ffmpeg_path,
            "-sseof", "-1",
            "-i", str(input_path),
            "-update", "1",
            "-q:v", "1",
            "-y",
            str(output_path),
        ]
        self._run(cmd, "extract last frame", cancel)
        return Path(output_path)

    def reverse(
        self,
        input_path: str | Path,
        output_path: str | Path,
        cancel: threading.Event | None = None,
    ) -> Path:
        """Write *input_path* played backwards to *output_path*."""
        self._require_input(input_path)
        cmd = [
            self.ffmpeg_path,
            "-i", str(input_path),
            "-vf", "reverse",
            "-y",
            str(output_path),
        ]
        self._run(cmd, "reverse video", cancel)
        return Path(output_path)

    def concatenate_manifest(
        self,
        manifest_path: str | Path,
        output_path: str | Path,
        reencode: bool = False,
        cancel: threading.Event | None = None,
    ) -> Path:
        """Join the clips listed in a concat manifest into *output_path*."""
        self._require_input(manifest_path)
        cmd = [
            self.ffmpeg_path,
            "-f", "concat",
            "-safe", "0",
            "-i", str(manifest_path),
        ]
        if not reencode:
            cmd += ["-c", "copy"]
        cmd += ["-y", str(output_path)]
        self._run(cmd, "combine videos", cancel)
        return Path(output_path)

    def concatenate(
        self,
        paths: Sequence[str | Path],
        output_path: str | Path,
        reencode: bool = False,
        cancel: threading.Event | None = None,
    ) -> Path:
        """Join *paths* in order into *output_path* via a temporary manifest."""
        output_path = Path(output_path)
        fd, name = tempfile.mkstemp(prefix=f"{output_path.stem}-", suffix="-list.txt")
        os.close(fd)
        manifest = Path(name)
        write_manifest(paths, manifest)
        try:
            return self.concatenate_manifest(manifest, output_path, reencode=reencode, cancel=cancel)
        finally:
            remove_quietly(manifest)

    def _require_input(self, path: str | Path) -> None:
        if not os.path.exists(path):
            raise SplicerError(
                f"Input file not found: {path}",
                self.ERROR_INPUT_FILE_NOT_FOUND,
            )

    def _is_ffmpeg_available(self) -> bool:
        if os.path.isabs(self.ffmpeg_path) or os.sep in self.ffmpeg_path:
            return os.path.exists(self.ffmpeg_path) and os.access(self.ffmpeg_path, os.X_OK)
        return shutil.which(self.ffmpeg_path) is not None

    def _run(self, cmd: list[str], action: str, cancel: threading.Event | None = None) -> None:
        """
        Run one ffmpeg command, killing it if *cancel* fires.

        Raises:
            SplicerError: if ffmpeg is missing or exits non-zero
            OperationCancelled: if *cancel* fires first
        """
        if cancel is not None and cancel.is_set():
            raise OperationCancelled(f"cancelled before {action}")
        if not self._is_ffmpeg_available():
            raise SplicerError(
                f"FFmpeg not found: {self.ffmpeg_path}",
                self.ERROR_FFMPEG_NOT_FOUND,
            )

        logger.info("ffmpeg %s: %s", action, " ".join(cmd[1:]))
        proc = subprocess.Popen(cmd, stdout=subprocess.PIPE, stderr=subprocess.PIPE)
        while True:
            try:
                _, stderr = proc.communicate(timeout=_CANCEL_CHECK_INTERVAL)
                break
            except subprocess.TimeoutExpired:
                if cancel is not None and cancel.is_set():
                    proc.kill()
                    proc.communicate()
                    raise OperationCancelled(f"cancelled during {action}")

        if proc.returncode != 0:
            # ffmpeg also sees the terminal interrupt and exits on its own.
            if cancel is not None and cancel.is_set():
                raise OperationCancelled(f"cancelled during {action}")
            error_msg = stderr.decode("utf-8", errors="ignore")
            raise SplicerError(
                f"couldn't {action}: {error_msg[-500:]}",
                self.ERROR_COMMAND_FAILED,
                details=error_msg,
            )
