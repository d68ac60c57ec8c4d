"""vidai CLI entrypoints."""

from __future__ import annotations

import argparse
import logging
import signal
import sys
import threading
from typing import Any, Optional, Sequence

from . import __version__
from .chain import Chain
from .client import Vidai
from .config import Settings, load_settings
from .exceptions import OperationCancelled, VidaiError
from .models import MODELS, GenerationOptions
from .splicer import FFmpegSplicer

logger = logging.getLogger("vidai")

_LOG_FORMAT = "%(asctime)s  %(name)s  %(levelname)s  %(message)s"


def _common_flags() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(add_help=False)
    parser.add_argument("--config", help="config file with VIDAI_* keys (optional)")
    parser.add_argument("--debug", action="store_true", default=None, help="debug logging")
    parser.add_argument("--wait", type=float, help="seconds between requests")
    parser.add_argument("--timeout", type=float, help="request timeout in seconds")
    parser.add_argument("--proxy", help="upstream proxy url (optional)")
    parser.add_argument("--token", help="api token")
    return parser


def _generation_flags() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(add_help=False)
    parser.add_argument("--model", choices=MODELS, default="gen2", help="model family")
    parser.add_argument("--interpolate", action=argparse.BooleanOptionalAction, default=True,
                        help="interpolate frames (gen2)")
    parser.add_argument("--upscale", action="store_true", help="upscale frames (gen2)")
    parser.add_argument("--watermark", action="store_true", help="add watermark")
    parser.add_argument("--motion-score", type=int, help="motion score (gen2)")
    parser.add_argument("--width", type=int, help="output width in pixels")
    parser.add_argument("--height", type=int, help="output height in pixels")
    parser.add_argument("--resolution", help="resolution tier, e.g. 720p (gen3)")
    parser.add_argument("--explore", action="store_true", help="explore mode")
    parser.add_argument("--folder", help="folder the results are filed under")
    return parser


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="vidai", description="Chained video generation.")
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("version", help="print version")

    common = _common_flags()
    generation = _generation_flags()

    generate = subparsers.add_parser(
        "generate", parents=[common, generation], help="generate a video from an image and/or text"
    )
    generate.add_argument("--image", help="source image")
    generate.add_argument("--text", default="", help="source text")
    generate.add_argument("--output", help="output file (optional, if omitted it won't be saved)")
    generate.add_argument("--extend", type=int, default=0, help="extend the video this many times")
    generate.add_argument("--last-frame", action="store_true", help="use the image as the last frame (gen3)")

    extend = subparsers.add_parser(
        "extend", parents=[common, generation], help="extend a video from its last frame"
    )
    extend.add_argument("--input", required=True, help="input video")
    extend.add_argument("--output", help="output file for the joined video (optional)")
    extend.add_argument("--n", type=int, default=1, help="number of extensions")

    loop = subparsers.add_parser("loop", parents=[common], help="append the reversed video to itself")
    loop.add_argument("--input", required=True, help="input video")
    loop.add_argument("--output", required=True, help="output video")

    return parser


def _settings(args: argparse.Namespace) -> Settings:
    return load_settings(
        args.config,
        token=args.token,
        wait=args.wait,
        timeout=args.timeout,
        proxy=args.proxy,
        debug=args.debug,
    )


def _options(args: argparse.Namespace, **extra: Any) -> GenerationOptions:
    return GenerationOptions(
        model=args.model,
        interpolate=args.interpolate,
        upscale=args.upscale,
        watermark=args.watermark,
        explore_mode=args.explore,
        motion_score=args.motion_score,
        width=args.width,
        height=args.height,
        resolution=args.resolution,
        folder=args.folder,
        **extra,
    )


def _client(settings: Settings) -> Vidai:
    if not settings.token:
        raise VidaiError("token is required")
    return Vidai.from_settings(settings)


def _run(args: argparse.Namespace, cancel: threading.Event) -> int:
    settings = _settings(args)
    logging.basicConfig(
        level=logging.DEBUG if settings.debug else logging.INFO,
        format=_LOG_FORMAT,
        datefmt="%H:%M:%S",
    )
    splicer = FFmpegSplicer(settings.ffmpeg_path)

    if args.command == "loop":
        Chain(splicer=splicer, work_dir=settings.work_dir).loop(args.input, args.output, cancel=cancel)
        return 0

    if args.command == "generate":
        if not args.image and not args.text:
            raise VidaiError("image or text is required")
        with _client(settings) as client:
            result = Chain(client, splicer, settings.work_dir).generate(
                image=args.image,
                text=args.text,
                extend=args.extend,
                output=args.output,
                options=_options(args, last_frame=args.last_frame),
                cancel=cancel,
            )
        if result.output_path:
            logger.info("saved %s", result.output_path)
        print(result.generation.model_dump_json(indent=2))
        return 0

    if args.n < 1:
        raise VidaiError("n must be greater than 0")
    with _client(settings) as client:
        urls = Chain(client, splicer, settings.work_dir).extend(
            args.input, args.n, output=args.output, options=_options(args), cancel=cancel
        )
    print("URLs:")
    for url in urls:
        print(url)
    return 0


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = _build_parser().parse_args(argv)
    if args.command == "version":
        print(__version__)
        return 0

    cancel = threading.Event()

    def _interrupt(_signum: int, _frame: Any) -> None:
        # First Ctrl-C cancels cooperatively; a second one aborts.
        cancel.set()
        signal.signal(signal.SIGINT, signal.default_int_handler)

    previous = signal.signal(signal.SIGINT, _interrupt)
    try:
        return _run(args, cancel)
    except OperationCancelled as exc:
        print(f"vidai: {exc}", file=sys.stderr)
        return 130
    except VidaiError as exc:
        print(f"vidai: {exc}", file=sys.stderr)
        return 1
    finally:
        signal.signal(signal.SIGINT, previous)


if __name__ == "__main__":
    raise SystemExit(main())
