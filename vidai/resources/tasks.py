from __future__ import annotations

import logging
import random
import re
import threading
from typing import TYPE_CHECKING, Any, Callable, Iterable, Optional
from urllib.parse import urlsplit

from .. import _clock
from ..exceptions import PolicyRejectionError, TaskFailedError, TransientTaskError
from ..models import Gen2Request, Gen3Request, GenerateRequest, Generation, Task, TaskEnvelope, TaskError

if TYPE_CHECKING:
    from .._auth import TeamScope
    from .._http import HttpClient

logger = logging.getLogger("vidai")

SUCCEEDED = "SUCCEEDED"
ACTIVE_STATUSES = frozenset({"PENDING", "RUNNING", "THROTTLED"})

DEFAULT_POLL_INTERVAL = 5.0
DEFAULT_STORAGE_URL_TEMPLATE = "https://dnznrvs05pmza.cloudfront.net/{uuid}.mp4"

POLICY_REASON_PREFIXES = ("SAFETY.INPUT",)
TRANSIENT_REASON_PREFIXES = ("INTERNAL.BAD_OUTPUT",)

SEED_RANGE = 1_000_000_000

_NAME_FRAGMENT = 20
_UUID_RE = re.compile(
    r"[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}", re.IGNORECASE
)


# ----------------------------------------------------------------------
# Payloads
# ----------------------------------------------------------------------


def task_name(display_name: str, seed: int, prompt: str = "", asset_name: str = "") -> str:
    """Cosmetic task name, e.g. ``"Gen-2 123, a red car driving, car.jpg"``."""
    parts = [f"{display_name} {seed}"]
    if prompt:
        parts.append(prompt[:_NAME_FRAGMENT])
    if asset_name:
        parts.append(asset_name[:_NAME_FRAGMENT])
    return ", ".join(parts)


def gen2_payload(request: Gen2Request, seed: int, team_id: int) -> dict[str, Any]:
    options: dict[str, Any] = {
        "interpolate": request.interpolate,
        "seed": seed,
        "upscale": request.upscale,
        "text_prompt": request.prompt,
        "watermark": request.watermark,
        "mode": "gen2",
        "motion_score": request.motion_score,
        "use_motion_score": True,
        "use_motion_vectors": False,
        "width": request.width,
        "height": request.height,
    }
    if request.video_url:
        options["init_video"] = request.video_url
    elif request.image_url:
        options["image_prompt"] = request.image_url
        options["init_image"] = request.image_url
    return {
        "taskType": "gen2",
        "internal": False,
        "options": {
            "seconds": Gen2Request.seconds,
            "gen2Options": options,
            "name": task_name(Gen2Request.display_name, seed, request.prompt, request.asset_name),
            "assetGroupName": request.folder or Gen2Request.display_name,
            "exploreMode": request.explore_mode,
        },
        "asTeamId": team_id,
    }


def gen3_payload(request: Gen3Request, seed: int, team_id: int) -> dict[str, Any]:
    options: dict[str, Any] = {
        "name": task_name(Gen3Request.display_name, seed, request.prompt, request.asset_name),
        "seconds": Gen3Request.seconds,
        "text_prompt": request.prompt,
        "seed": seed,
        "exploreMode": request.explore_mode,
        "watermark": request.watermark,
        "enhance_prompt": True,
        "assetGroupName": request.folder or Gen3Request.display_name,
    }
    if request.video_url:
        options["init_video"] = request.video_url
    elif request.image_url:
        options["init_image"] = request.image_url
        if request.last_frame:
            options["image_as_end_frame"] = True
    if request.resolution:
        options["resolution"] = request.resolution
    elif request.width is not None:
        options["width"] = request.width
        options["height"] = request.height
    return {
        "taskType": "gen3a_turbo",
        "internal": False,
        "options": options,
        "asTeamId": team_id,
    }


def build_payload(request: GenerateRequest, seed: int, team_id: int) -> dict[str, Any]:
    if isinstance(request, Gen2Request):
        return gen2_payload(request, seed, team_id)
    if isinstance(request, Gen3Request):
        return gen3_payload(request, seed, team_id)
    raise TypeError(f"unsupported request type {type(request).__name__}")


def normalize_url(url: str, template: str = DEFAULT_STORAGE_URL_TEMPLATE) -> str:
    """Map a signed, host-specific artifact URL onto the storage template.

    Returns *url* unchanged when it carries no UUID.
    """
    match = _UUID_RE.search(urlsplit(url).path)
    if not match:
        return url
    return template.format(uuid=match.group(0).lower())


# ----------------------------------------------------------------------
# Failure classification
# ----------------------------------------------------------------------


class FailureClassifier:
    """Map a failed task's rejection reason onto the exception to raise.

    Input policy rejections are final. Known transient output problems
    are marked retryable. A missing reason is treated as transient unless
    *unknown_is_transient* is ``False``. Everything else is final.
    """

    def __init__(
        self,
        policy_prefixes: Iterable[str] = POLICY_REASON_PREFIXES,
        transient_prefixes: Iterable[str] = TRANSIENT_REASON_PREFIXES,
        unknown_is_transient: bool = True,
    ):
        self.policy_prefixes = tuple(policy_prefixes)
        self.transient_prefixes = tuple(transient_prefixes)
        self.unknown_is_transient = unknown_is_transient

    def classify(self, reason: Optional[str]) -> type[TaskFailedError]:
        if not reason:
            return TransientTaskError if self.unknown_is_transient else TaskFailedError
        if reason.startswith(self.policy_prefixes):
            return PolicyRejectionError
        if reason.startswith(self.transient_prefixes):
            return TransientTaskError
        return TaskFailedError

    def failure(self, task: Task) -> TaskFailedError:
        error = task.error or TaskError()
        message = f"task {task.id!r} {task.status}"
        if error.reason:
            message += f" ({error.reason})"
        if error.message:
            message += f": {error.message}"
        cls = self.classify(error.reason)
        return cls(
            message,
            task_id=task.id,
            status=task.status,
            reason=error.reason,
            moderation_category=error.moderation_category,
            detail=error.message,
        )


# ----------------------------------------------------------------------
# Poller
# ----------------------------------------------------------------------


class TaskPoller:
    """Drive a submitted task to a terminal status.

    While the task is PENDING, RUNNING or THROTTLED the poller waits
    *interval* seconds and re-fetches it. The wait and the fetch are the
    only blocking steps, and both are injected.
    """

    def __init__(
        self,
        fetch: Callable[[str, Optional[threading.Event]], Task],
        interval: float = DEFAULT_POLL_INTERVAL,
        sleep: _clock.Sleeper = _clock.sleep,
        classifier: FailureClassifier | None = None,
        storage_url_template: str = DEFAULT_STORAGE_URL_TEMPLATE,
    ):
        self._fetch = fetch
        self._interval = interval
        self._sleep = sleep
        self.classifier = classifier or FailureClassifier()
        self._storage_url_template = storage_url_template

    def run(self, task: Task, cancel: threading.Event | None = None) -> Generation:
        """Poll *task* until it finishes.

        Returns:
            The :class:`~vidai.models.Generation` of the first artifact.

        Raises:
            TaskFailedError: the task ended in a failure status, or
                succeeded without a usable artifact. Subclasses tell
                policy rejections apart from resubmittable failures.
            OperationCancelled: *cancel* fired during a wait. The remote
                task is left as is.
        """
        last: tuple[str, Any] | None = None
        while task.status in ACTIVE_STATUSES:
            progress = (task.status, task.progress_ratio)
            if progress != last:
                logger.info("task=%s  %s %s", task.id, task.status, task.progress_ratio or "")
                last = progress
            self._sleep(self._interval, cancel)
            task = self._fetch(task.id, cancel)

        if task.status != SUCCEEDED:
            failure = self.classifier.failure(task)
            logger.warning("%s (retryable=%s)", failure, failure.retryable)
            raise failure

        if not task.artifacts:
            raise TaskFailedError(f"task {task.id!r} returned no artifacts", task_id=task.id, status=task.status)
        artifact = task.artifacts[0]
        if not artifact.url:
            raise TaskFailedError(f"task {task.id!r} returned an empty artifact url", task_id=task.id, status=task.status)

        logger.info("task=%s  succeeded %s", task.id, artifact.url)
        return Generation(
            id=task.id,
            url=artifact.url,
            normalized_url=normalize_url(artifact.url, self._storage_url_template),
            preview_urls=artifact.preview_urls,
        )


# ----------------------------------------------------------------------
# Resource
# ----------------------------------------------------------------------


class TasksResource:
    """Accessed via client.tasks — submit generation tasks and wait for them."""

    def __init__(
        self,
        http: "HttpClient",
        scope: "TeamScope",
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        classifier: FailureClassifier | None = None,
        storage_url_template: str = DEFAULT_STORAGE_URL_TEMPLATE,
        sleep: _clock.Sleeper = _clock.sleep,
        seed: Callable[[], int] | None = None,
    ):
        self._http = http
        self._scope = scope
        self._seed = seed or (lambda: random.randrange(SEED_RANGE))
        self.poller = TaskPoller(
            self.get,
            interval=poll_interval,
            sleep=sleep,
            classifier=classifier,
            storage_url_template=storage_url_template,
        )

    def create(self, request: GenerateRequest, cancel: threading.Event | None = None) -> Task:
        """Submit *request* and return the freshly created task."""
        team_id = self._scope.resolve(self._http, cancel)
        payload = build_payload(request, self._seed(), team_id)
        envelope = self._http.post("tasks", json=payload, shape=TaskEnvelope, cancel=cancel)
        logger.info(
            "created %s task=%s (%s)",
            request.model, envelope.task.id, "continuation" if request.is_continuation else "fresh",
        )
        return envelope.task

    def get(self, task_id: str, cancel: threading.Event | None = None) -> Task:
        team_id = self._scope.resolve(self._http, cancel)
        envelope = self._http.get(f"tasks/{task_id}?asTeamId={team_id}", shape=TaskEnvelope, cancel=cancel)
        return envelope.task

    def generate(self, request: GenerateRequest, cancel: threading.Event | None = None) -> Generation:
        """Submit *request* and block until the task finishes.

        Raises:
            TaskFailedError: see :meth:`TaskPoller.run`.
        """
        task = self.create(request, cancel)
        return self.poller.run(task, cancel)
