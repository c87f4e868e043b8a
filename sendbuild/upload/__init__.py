"""
Data Theorem Upload Module

Sends a build artifact to the Data Theorem Upload API via a 2-phase workflow.

Phase 1: upload_init - Exchange the Upload API key for a one-time upload URL
Phase 2: upload - Stream the build and its companion files to that URL
"""

from .api_client import UploadApiClient, validate_api_key
from .content_source import (
    CommandChannel,
    ContentSource,
    LocalContentSource,
    RemoteChannel,
    RemoteContentSource,
    Workspace,
)
from .errors import (
    ConfigurationError,
    RemoteChannelError,
    SendBuildError,
    StreamCancelledError,
)
from .models import (
    ApplicationCredential,
    FailureKind,
    ProxyConfiguration,
    ReleaseType,
    UploadOutcome,
    UploadRequest,
    UploadSettings,
)
from .multipart import MultipartFormBuilder, build_upload_form
from .upload_orchestrator import SendBuildAction

__all__ = [
    'SendBuildAction',
    'UploadApiClient',
    'validate_api_key',
    'MultipartFormBuilder',
    'build_upload_form',
    'Workspace',
    'ContentSource',
    'LocalContentSource',
    'RemoteContentSource',
    'RemoteChannel',
    'CommandChannel',
    'UploadRequest',
    'UploadOutcome',
    'UploadSettings',
    'FailureKind',
    'ReleaseType',
    'ProxyConfiguration',
    'ApplicationCredential',
    'SendBuildError',
    'StreamCancelledError',
    'RemoteChannelError',
    'ConfigurationError',
]
