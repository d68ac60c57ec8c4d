from __future__ import annotations

import logging
import threading
from typing import TYPE_CHECKING, Any, Optional

from . import _clock
from ._auth import Credential, TeamScope
from ._http import DEFAULT_BASE_URL, HttpClient
from ._ratelimit import RateLimiter
from ._transport import HttpxTransport, Transport
from .resources.assets import AssetsResource
from .resources.tasks import DEFAULT_STORAGE_URL_TEMPLATE, FailureClassifier, TasksResource

if TYPE_CHECKING:
    from .config import Settings

logger = logging.getLogger("vidai")


class Vidai:
    """Top-level client for the video generation API.

    Create a single instance per token and reuse it. The client owns an
    HTTP connection pool; close it when you are done, either by calling
    :meth:`close` or by using the client as a context manager::

        with Vidai(token="eyJ...") as client:
            asset = client.assets.upload("car.jpg", data)
            gen = client.tasks.generate(GenerationOptions().request(image_url=asset.url))
            client.assets.download(gen.url, "car.mp4")
    """

    assets: AssetsResource
    """Uploads, deletion and downloads. See :class:`AssetsResource`."""

    tasks: TasksResource
    """Generation task submission and polling. See :class:`TasksResource`."""

    def __init__(
        self,
        token: str,
        base_url: str = DEFAULT_BASE_URL,
        wait: float = 1.0,
        timeout: float = 120.0,
        proxy: Optional[str] = None,
        debug: bool = False,
        debug_dir: Optional[str] = "logs",
        max_attempts: int = 3,
        poll_interval: float = 5.0,
        storage_url_template: str = DEFAULT_STORAGE_URL_TEMPLATE,
        classifier: Optional[FailureClassifier] = None,
        transport: Optional[Transport] = None,
        rate_limiter: Optional[RateLimiter] = None,
        sleep: _clock.Sleeper = _clock.sleep,
    ):
        """
        Args:
            token: Bearer token (a JWT). Its ``exp`` claim is decoded once;
                every request fails with :exc:`CredentialExpiredError`
                after that moment.
            base_url: API root every relative path is resolved against.
            wait: Minimum seconds between two outbound requests.
            timeout: Per-request transport timeout in seconds.
            proxy: Optional upstream proxy URL.
            debug: Set to ``True`` to enable verbose request/response
                logging via the ``vidai`` logger.
            debug_dir: Directory that receives raw bodies of failed
                responses. ``None`` disables the capture.
            max_attempts: Physical attempts per request, retries included.
            poll_interval: Seconds between task status polls.
            storage_url_template: Template used to derive
                ``Generation.normalized_url``.
            classifier: Overrides how failed tasks are classified.
            transport: Overrides the default :class:`HttpxTransport`.
            rate_limiter: Share one limiter between several clients.
            sleep: Wait function used for backoff and polling.
        """
        if debug:
            logging.getLogger("vidai").setLevel(logging.DEBUG)
            if not logging.getLogger("vidai").handlers:
                logging.getLogger("vidai").addHandler(logging.StreamHandler())

        self.credential = Credential.from_token(token)
        self.scope = TeamScope()
        self._http = HttpClient(
            credential=self.credential,
            transport=transport or HttpxTransport(timeout=timeout, proxy=proxy),
            rate_limiter=rate_limiter or RateLimiter(wait),
            base_url=base_url,
            max_attempts=max_attempts,
            debug_dir=debug_dir,
            sleep=sleep,
        )
        self.assets = AssetsResource(self._http, self.scope)
        self.tasks = TasksResource(
            self._http,
            self.scope,
            poll_interval=poll_interval,
            classifier=classifier,
            storage_url_template=storage_url_template,
            sleep=sleep,
        )

    @classmethod
    def from_settings(cls, settings: "Settings", **kwargs: Any) -> "Vidai":
        """Build a client from :class:`~vidai.config.Settings`."""
        return cls(
            token=settings.token,
            base_url=settings.base_url,
            wait=settings.wait,
            timeout=settings.timeout,
            proxy=settings.proxy,
            debug=settings.debug,
            debug_dir=settings.debug_dir,
            max_attempts=settings.max_attempts,
            poll_interval=settings.poll_interval,
            storage_url_template=settings.storage_url_template,
            classifier=FailureClassifier(
                transient_prefixes=settings.transient_reasons,
                unknown_is_transient=settings.unknown_reason_is_transient,
            ),
            **kwargs,
        )

    def resolve_scope(self, cancel: threading.Event | None = None) -> int:
        """Return the team id tasks are created under, fetching it once."""
        return self.scope.resolve(self._http, cancel)

    def close(self) -> None:
        """Close the underlying HTTP connection pool."""
        self._http.close()

    def __enter__(self) -> "Vidai":
        return self

    def __exit__(self, *_: Any) -> None:
        self.close()
