"""
Data Theorem Upload API Client

Runs one attempt of the two-phase upload workflow:

Phase 1: upload_init - exchange the secret Upload API key for a one-time upload URL
Phase 2: upload - stream the build (and optional mapping file) to that URL

Every phase returns an UploadOutcome; failures are reported as values so the
retry driver can inspect them uniformly.
"""

import json
import logging
import threading
from typing import Optional

import requests
from rich.console import Console

from .content_source import Workspace
from .errors import (
    RemoteChannelError,
    StreamCancelledError,
    classify_transport_error,
    describe_exception,
)
from .models import FailureKind, UploadOutcome, UploadRequest, UploadSettings
from .multipart import build_upload_form
from .proxy import create_http_session, silence_insecure_warnings

logger = logging.getLogger(__name__)

API_KEY_LABEL = "APIKey"


def validate_api_key(api_key: Optional[str]) -> Optional[UploadOutcome]:
    """Check the key locally; returns a failure outcome or None when usable"""
    if api_key is None:
        return UploadOutcome.failure(
            FailureKind.MISSING_CREDENTIAL,
            "Missing Data Theorem upload APIKey:\n"
            "Ensure \"DATA_THEOREM_UPLOAD_API_KEY\" is set in the credentials or environment",
        )
    if api_key.startswith(API_KEY_LABEL):
        return UploadOutcome.failure(
            FailureKind.INVALID_CREDENTIAL_FORMAT,
            f"Error your upload APIKey shouldn't start with \"{API_KEY_LABEL}\"",
        )
    if api_key == "":
        return UploadOutcome.failure(
            FailureKind.INVALID_CREDENTIAL_FORMAT,
            "Upload APIKey secret key is empty",
        )
    try:
        api_key.encode("latin-1")
    except UnicodeEncodeError:
        return UploadOutcome.failure(
            FailureKind.INVALID_CREDENTIAL_FORMAT,
            "Upload APIKey contains characters that cannot be sent in an HTTP header",
        )
    return None


class UploadApiClient:
    """Handles the upload_init and upload calls for one build request"""

    def __init__(
        self,
        settings: UploadSettings,
        workspace: Optional[Workspace] = None,
        console: Optional[Console] = None,
        cancel_event: Optional[threading.Event] = None,
    ):
        self.settings = settings
        self.workspace = workspace or Workspace()
        self.console = console or Console()
        self.cancel_event = cancel_event

    def perform_upload(self, request: UploadRequest) -> UploadOutcome:
        """Run init then, if it produced an upload URL, the upload phase"""
        init_outcome = self.upload_init(request)
        if not init_outcome.success or not init_outcome.upload_url:
            return init_outcome
        return self.upload_build(request, init_outcome.upload_url)

    def upload_init(self, request: UploadRequest) -> UploadOutcome:
        """POST upload_init and extract the one-time upload URL"""
        invalid = validate_api_key(request.api_key)
        if invalid is not None:
            return invalid

        self.console.print("Retrieving the upload URL from Data Theorem ...")
        try:
            response = self._upload_init_request(request)
        except (requests.exceptions.RequestException, OSError) as e:
            return self._init_transport_failure(e)

        body = response.text
        if not body:
            return UploadOutcome.failure(
                FailureKind.EMPTY_RESPONSE_BODY,
                "Data Theorem upload_init call error: Empty body response",
            )

        if response.status_code == 401:
            return UploadOutcome.failure(
                FailureKind.AUTHENTICATION_REJECTED,
                f"Data Theorem upload_init call Forbidden Access: {body}",
            )

        if response.status_code == 200:
            upload_url = self._extract_upload_url(body)
            if upload_url is None:
                return UploadOutcome.failure(
                    FailureKind.MALFORMED_SERVER_PAYLOAD,
                    f"Data Theorem upload_init wrong payload: {body}",
                )
            return UploadOutcome.ok(
                f"Successfully retrieved the upload URL from Data Theorem: {body}",
                upload_url=upload_url,
            )

        return UploadOutcome.failure(
            FailureKind.SERVER_ERROR,
            f"Data Theorem upload_init call error: {body}",
        )

    def upload_build(self, request: UploadRequest, upload_url: str) -> UploadOutcome:
        """POST the multipart build body to the one-time upload URL"""
        try:
            response = self._upload_build_request(request, upload_url)
        except StreamCancelledError as e:
            return UploadOutcome.failure(
                FailureKind.STREAM_CANCELLED,
                f"Data Theorem upload build was cancelled: {e}",
            )
        except (requests.exceptions.RequestException, RemoteChannelError, OSError) as e:
            logger.debug("Upload request failed", exc_info=True)
            return UploadOutcome.failure(
                classify_transport_error(e),
                f"Data Theorem upload build returned an error: IOException: {describe_exception(e)}",
            )

        body = response.text
        if not body:
            return UploadOutcome.failure(
                FailureKind.EMPTY_RESPONSE_BODY,
                "Data Theorem upload build returned an empty body error",
            )

        if response.status_code == 200:
            return UploadOutcome.ok(f"Successfully uploaded build to Data Theorem : {body}")

        return UploadOutcome.failure(
            FailureKind.SERVER_ERROR,
            f"Data Theorem upload build returned an error: {body}",
        )

    def _upload_init_request(self, request: UploadRequest) -> requests.Response:
        headers = {
            "Authorization": f"APIKEY {request.api_key}",
            "User-Agent": self.settings.user_agent,
        }
        with create_http_session(request.proxy) as session, silence_insecure_warnings(request.proxy):
            logger.debug(f"POST {self.settings.init_url}")
            response = session.post(
                self.settings.init_url,
                headers=headers,
                timeout=self.settings.timeout,
            )
            self._report_status(response)
            return response

    def _upload_build_request(self, request: UploadRequest, upload_url: str) -> requests.Response:
        form = build_upload_form(
            request,
            self.workspace,
            chunk_size=self.settings.chunk_size,
            cancel_event=self.cancel_event,
            console=self.console,
        )
        headers = {
            "User-Agent": self.settings.user_agent,
            "Content-Type": form.content_type,
        }
        body = form.build()

        with create_http_session(request.proxy) as session, silence_insecure_warnings(request.proxy):
            self.console.print(f"Start uploading build to the endpoint: {upload_url}")
            logger.debug(f"POST {upload_url} with parts {form.field_names}")
            try:
                response = session.post(
                    upload_url,
                    data=body,
                    headers=headers,
                    timeout=self.settings.timeout,
                )
            except requests.exceptions.RequestException as e:
                # A failed read inside the body generator surfaces wrapped by the transport
                cause = _find_stream_error(e)
                if cause is not None:
                    raise cause from e
                raise
            self._report_status(response)
            return response

    def _extract_upload_url(self, body: str) -> Optional[str]:
        try:
            payload = json.loads(body)
        except ValueError:
            logger.debug("upload_init returned a body that is not JSON", exc_info=True)
            return None
        if not isinstance(payload, dict):
            return None
        upload_url = payload.get("upload_url")
        if not isinstance(upload_url, str) or not upload_url:
            return None
        return upload_url

    def _init_transport_failure(self, error: Exception) -> UploadOutcome:
        kind = classify_transport_error(error)
        logger.debug("upload_init request failed", exc_info=True)
        if kind == FailureKind.HOST_UNREACHABLE:
            return UploadOutcome.failure(
                kind,
                "Data Theorem upload_init call error: UnknownHostException \n"
                f"Please contact Data Theorem support: {describe_exception(error)}",
            )
        return UploadOutcome.failure(
            kind,
            f"Data Theorem upload_init call error: IOException {describe_exception(error)}",
        )

    def _report_status(self, response: requests.Response) -> None:
        self.console.print(f"HTTP {response.status_code} {response.reason or ''}".rstrip())


def _find_stream_error(error: BaseException):
    current = error
    seen = set()
    while current is not None and id(current) not in seen:
        seen.add(id(current))
        if isinstance(current, (StreamCancelledError, RemoteChannelError)):
            return current
        current = current.__cause__ or current.__context__
    return None
