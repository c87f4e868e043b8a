"""
Data Models for the Data Theorem Upload Workflow

Dataclass-based models describing one upload request, its optional proxy and
application credential, and the outcome of each protocol phase.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional
from urllib.parse import quote


class FailureKind(Enum):
    """Classification of a failed upload phase"""
    INVALID_CREDENTIAL_FORMAT = "invalid_credential_format"
    MISSING_CREDENTIAL = "missing_credential"
    AUTHENTICATION_REJECTED = "authentication_rejected"
    MALFORMED_SERVER_PAYLOAD = "malformed_server_payload"
    SERVER_ERROR = "server_error"
    EMPTY_RESPONSE_BODY = "empty_response_body"
    HOST_UNREACHABLE = "host_unreachable"
    TRANSPORT_FAILURE = "transport_failure"
    STREAM_CANCELLED = "stream_cancelled"


LOCAL_VALIDATION_FAILURES = frozenset({
    FailureKind.INVALID_CREDENTIAL_FORMAT,
    FailureKind.MISSING_CREDENTIAL,
})


class ReleaseType:
    """Known release type tags sent with the build"""
    PRE_PROD = "PRE_PROD"
    ENTERPRISE = "ENTERPRISE"
    PUBLIC_STORE = "PUBLIC_STORE"

    ALL = (PRE_PROD, ENTERPRISE, PUBLIC_STORE)

    @classmethod
    def normalize(cls, value: Optional[str]) -> str:
        """Upper-case known tags, pass unknown ones through unchanged"""
        if not value:
            return cls.PRE_PROD
        candidate = value.strip().upper()
        if candidate in cls.ALL:
            return candidate
        return value.strip()


@dataclass(frozen=True)
class UploadOutcome:
    """Result of one upload phase, always returned and never raised"""
    success: bool
    message: str
    kind: Optional[FailureKind] = None
    upload_url: Optional[str] = None

    @classmethod
    def ok(cls, message: str, upload_url: Optional[str] = None) -> "UploadOutcome":
        return cls(success=True, message=message, upload_url=upload_url)

    @classmethod
    def failure(cls, kind: FailureKind, message: str) -> "UploadOutcome":
        return cls(success=False, message=message, kind=kind)

    @property
    def is_local_failure(self) -> bool:
        """True when the failure happened before any network call"""
        return self.kind in LOCAL_VALIDATION_FAILURES


@dataclass(frozen=True)
class ProxyConfiguration:
    """Proxy applied to every HTTP client built for an upload"""
    hostname: str
    port: int
    username: Optional[str] = None
    password: Optional[str] = None
    unsecure_connection: bool = False

    @property
    def proxy_url(self) -> str:
        """Proxy URL usable in a requests proxies mapping"""
        credentials = ""
        if self.username:
            credentials = quote(self.username, safe="")
            if self.password:
                credentials += ":" + quote(self.password, safe="")
            credentials += "@"
        return f"http://{credentials}{self.hostname}:{self.port}"

    def __repr__(self) -> str:
        return (
            f"ProxyConfiguration(hostname={self.hostname!r}, port={self.port}, "
            f"username={self.username!r}, unsecure_connection={self.unsecure_connection})"
        )


@dataclass(frozen=True)
class ApplicationCredential:
    """Credentials the scanner uses to log into the uploaded application"""
    username: str
    password: str
    comments: Optional[str] = None

    def add_to_form(self, builder) -> None:
        """Append the credential fields to a multipart form builder"""
        builder.add_text("username", self.username)
        builder.add_text("password", self.password)
        if self.comments:
            builder.add_text("comments", self.comments)

    def __repr__(self) -> str:
        return f"ApplicationCredential(username={self.username!r}, password='***')"


@dataclass(frozen=True)
class UploadRequest:
    """Immutable description of one build upload"""
    api_key: Optional[str]
    build_path: str
    source_map_path: Optional[str] = None
    is_build_stored_in_artifact_folder: bool = False
    release_type: str = ReleaseType.PRE_PROD
    external_id: Optional[str] = None
    application_credential: Optional[ApplicationCredential] = None
    proxy: Optional[ProxyConfiguration] = None

    def __repr__(self) -> str:
        masked_key = None if self.api_key is None else "***"
        return (
            f"UploadRequest(api_key={masked_key!r}, build_path={self.build_path!r}, "
            f"source_map_path={self.source_map_path!r}, "
            f"is_build_stored_in_artifact_folder={self.is_build_stored_in_artifact_folder}, "
            f"release_type={self.release_type!r}, external_id={self.external_id!r}, "
            f"application_credential={self.application_credential!r}, proxy={self.proxy!r})"
        )


@dataclass
class UploadSettings:
    """Static settings shared by every upload attempt"""
    init_url: str = "https://api.securetheorem.com/uploadapi/v1/upload_init"
    user_agent_product: str = "Jenkins Upload API Plugin"
    version: str = "2.2.0"
    max_attempts: int = 3
    chunk_size: int = 64 * 1024
    timeout: Optional[float] = None

    @property
    def user_agent(self) -> str:
        return f"{self.user_agent_product} {self.version}"
