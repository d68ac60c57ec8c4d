"""vidai
=====

Drive long-running video generation tasks from Python and chain them into
one continuous clip. Every step of a chain moves through the same stages:

1. **Upload**: an input image is pushed to storage and registered as an
   asset (skipped for text-only prompts and continuations).
2. **Submit**: a generation task is created for one of the two model
   families (``gen2``: 4 second clips, ``gen3``: 10 second clips).
3. **Poll**: the task is re-fetched every few seconds until it succeeds or
   fails. Failures are classified as policy rejections (final) or
   transient (safe to resubmit).
4. **Download**: the resulting clip is fetched to a local file.
5. **Splice**: clips are reversed, cut to their last frame or joined
   losslessly through ``ffmpeg``.

Quick start::

    from vidai import Chain, GenerationOptions, Vidai

    with Vidai(token="eyJ...") as client:
        chain = Chain(client)

        # image -> clip, extended twice with continuations
        result = chain.generate(image="car.jpg", extend=2, output="car.mp4")
        print(result.generation.url)

        # existing clip -> 3 more clips generated from its last frame
        urls = chain.extend("car.mp4", n=3, output="car-long.mp4",
                            options=GenerationOptions(model="gen3"))

Main classes
------------

:class:`Vidai`
    The API client. Owns the rate limited, retrying request layer, the
    token and the team scope. ``client.assets`` and ``client.tasks`` expose
    the remote operations.

:class:`Chain`
    Multi-step workflows: :meth:`~Chain.generate`, :meth:`~Chain.extend`
    and :meth:`~Chain.loop`. Owns temporary files and cleans them up.

:class:`FFmpegSplicer`
    Last-frame extraction, reversal and concatenation via ``ffmpeg``.

Exceptions
----------

All exceptions inherit from :class:`VidaiError`.

:class:`CredentialExpiredError`
    The token's ``exp`` claim has passed. No request was sent.

:class:`TransientTransportError`, :class:`TransientServerError`
    Retryable failures that persisted past the attempt ceiling.

:class:`PermanentRequestError`
    Any other non-success status; carries ``status_code`` and ``detail``.

:class:`TaskFailedError`, :class:`PolicyRejectionError`, :class:`TransientTaskError`
    A task ended without a result. ``retryable`` says whether resubmitting
    makes sense.
"""

from .chain import Chain, GenerateResult
from .client import Vidai
from .exceptions import (
    CredentialExpiredError,
    LocalIOError,
    OperationCancelled,
    PermanentRequestError,
    PolicyRejectionError,
    ResponseDecodeError,
    SplicerError,
    TaskFailedError,
    TransientServerError,
    TransientTaskError,
    TransientTransportError,
    VidaiError,
)
from .models import Asset, Gen2Request, Gen3Request, Generation, GenerationOptions
from .resources import AssetsResource, FailureClassifier, TaskPoller, TasksResource
from .splicer import FFmpegSplicer

__version__ = "0.1.0"
__all__ = [
    "Vidai",
    "Chain",
    "GenerateResult",
    "FFmpegSplicer",
    "AssetsResource",
    "TasksResource",
    "TaskPoller",
    "FailureClassifier",
    "Asset",
    "Generation",
    "GenerationOptions",
    "Gen2Request",
    "Gen3Request",
    "VidaiError",
    "CredentialExpiredError",
    "TransientTransportError",
    "TransientServerError",
    "PermanentRequestError",
    "ResponseDecodeError",
    "TaskFailedError",
    "PolicyRejectionError",
    "TransientTaskError",
    "LocalIOError",
    "OperationCancelled",
    "SplicerError",
]
