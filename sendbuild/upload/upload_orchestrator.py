"""
SendBuild Action

Retry driver around the two-phase upload. Each attempt re-runs upload_init so
a fresh one-time upload URL is used every time; attempts run one after the
other with no delay in between.
"""

import logging
import threading
from typing import Optional

import backoff
from rich.console import Console

from .api_client import UploadApiClient
from .content_source import Workspace
from .models import FailureKind, UploadOutcome, UploadRequest, UploadSettings

logger = logging.getLogger(__name__)


def should_retry(outcome: UploadOutcome) -> bool:
    """Retry every failure except local credential validation errors and cancellation"""
    if outcome.success or outcome.is_local_failure:
        return False
    return outcome.kind != FailureKind.STREAM_CANCELLED


class SendBuildAction:
    """Upload a build to the Data Theorem Upload API with retries"""

    def __init__(
        self,
        settings: Optional[UploadSettings] = None,
        workspace: Optional[Workspace] = None,
        console: Optional[Console] = None,
        cancel_event: Optional[threading.Event] = None,
    ):
        self.settings = settings or UploadSettings()
        self.console = console or Console()
        self.client = UploadApiClient(
            self.settings,
            workspace=workspace,
            console=self.console,
            cancel_event=cancel_event,
        )
        self.attempts = 0

    def perform(self, request: UploadRequest) -> UploadOutcome:
        """Run full upload attempts until one succeeds or attempts run out"""
        self.attempts = 0
        logger.debug(f"Uploading {request!r}")

        @backoff.on_predicate(
            backoff.constant,
            should_retry,
            max_tries=self.settings.max_attempts,
            interval=0,
            jitter=None,
            on_backoff=self._on_retry,
            logger=logger,
            backoff_log_level=logging.DEBUG,
            giveup_log_level=logging.INFO,
        )
        def attempt() -> UploadOutcome:
            self.attempts += 1
            return self.client.perform_upload(request)

        outcome = attempt()
        if outcome.success:
            logger.info(f"Upload succeeded after {self.attempts} attempt(s)")
        else:
            logger.warning(f"Upload failed after {self.attempts} attempt(s): {outcome.kind}")
        return outcome

    def _on_retry(self, details: dict) -> None:
        outcome = details.get("value")
        message = outcome.message if outcome is not None else "unknown error"
        self.console.print(
            f"Attempt {details['tries']}/{self.settings.max_attempts} failed: {message}",
            style="yellow",
            markup=False,
        )
