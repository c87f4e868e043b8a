"""
Upload service for SendBuild.

Host integration layer: turns CLI arguments, configuration files and
environment variables into an UploadRequest, runs the SendBuildAction and
maps its outcome to an exit code.
"""
import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from typing import Optional

from sendbuild.core.config_manager import ConfigManager
from sendbuild.rich_utils.ui_helpers import get_console
from sendbuild.upload import (
    ApplicationCredential,
    CommandChannel,
    ConfigurationError,
    ProxyConfiguration,
    ReleaseType,
    SendBuildAction,
    UploadOutcome,
    UploadRequest,
    Workspace,
)

logger = logging.getLogger(__name__)


class UploadService:
    """Service for uploading a build to Data Theorem."""

    def __init__(self, console=None, environ: Optional[dict] = None):
        self.config_manager = ConfigManager()
        self.console = console or get_console()
        self.environ = environ
        self.cancel_event = threading.Event()

    def build_request(
        self,
        config: dict,
        build_path: str,
        api_key: Optional[str] = None,
        source_map_path: Optional[str] = None,
        release_type: Optional[str] = None,
        external_id: Optional[str] = None,
        artifact_folder: Optional[bool] = None,
        proxy: Optional[ProxyConfiguration] = None,
        application_credential: Optional[ApplicationCredential] = None,
    ) -> UploadRequest:
        """Combine CLI values with the merged configuration."""
        build_config = config.get("build") or {}
        return UploadRequest(
            api_key=self.config_manager.get_api_key(api_key, self.environ),
            build_path=build_path,
            source_map_path=source_map_path,
            is_build_stored_in_artifact_folder=(
                artifact_folder
                if artifact_folder is not None
                else bool(build_config.get("is_build_stored_in_artifact_folder"))
            ),
            release_type=(
                ReleaseType.normalize(release_type)
                if release_type
                else self.config_manager.get_release_type(config)
            ),
            external_id=external_id or build_config.get("external_id") or None,
            application_credential=application_credential or self.config_manager.build_application_credential(config),
            proxy=proxy or self.config_manager.build_proxy(config),
        )

    def build_workspace(self, config: dict, root: Optional[str] = None, remote_command: Optional[str] = None) -> Workspace:
        """Local workspace, or a remote one when a streaming command is configured."""
        workspace_config = config.get("workspace") or {}
        root = root or workspace_config.get("root") or "."
        remote_command = remote_command or workspace_config.get("remote_command")
        if remote_command:
            return Workspace(root, channel=CommandChannel.from_string(remote_command))
        return Workspace(root)

    def run(self, action: SendBuildAction, request: UploadRequest) -> UploadOutcome:
        """Run the upload on a worker thread so Ctrl-C can cancel streaming reads."""
        with ThreadPoolExecutor(max_workers=1) as executor:
            future = executor.submit(action.perform, request)
            try:
                return future.result()
            except KeyboardInterrupt:
                self.console.print("Cancelling upload...", style="yellow")
                self.cancel_event.set()
                return future.result()

    def execute_upload(
        self,
        build_path: str,
        api_key: Optional[str] = None,
        source_map_path: Optional[str] = None,
        release_type: Optional[str] = None,
        external_id: Optional[str] = None,
        artifact_folder: Optional[bool] = None,
        workspace_root: Optional[str] = None,
        remote_command: Optional[str] = None,
        proxy: Optional[ProxyConfiguration] = None,
        application_credential: Optional[ApplicationCredential] = None,
        config_path: Optional[str] = None,
    ) -> int:
        """Execute upload workflow and return exit code."""
        try:
            config = self.config_manager.discover_and_load_config(config_path)
            config = self.config_manager.apply_environment(config, self.environ)
            settings = self.config_manager.build_settings(config)
            request = self.build_request(
                config,
                build_path,
                api_key=api_key,
                source_map_path=source_map_path,
                release_type=release_type,
                external_id=external_id,
                artifact_folder=artifact_folder,
                proxy=proxy,
                application_credential=application_credential,
            )
            workspace = self.build_workspace(config, workspace_root, remote_command)
            logger.debug(f"Upload settings: {settings}")
        except ConfigurationError as e:
            self.console.print(f"❌ Configuration error: {e}", style="bold red")
            return 1

        self.console.print("🚀 Uploading build to Data Theorem...", style="bold blue")
        action = SendBuildAction(
            settings,
            workspace=workspace,
            console=self.console,
            cancel_event=self.cancel_event,
        )
        outcome = self.run(action, request)

        if outcome.success:
            self.console.print(f"✅ {outcome.message}", style="bold green", markup=False)
            return 0

        self.console.print(f"❌ Upload failed after {action.attempts} attempt(s)", style="bold red")
        self.console.print(outcome.message, style="red", markup=False)
        return 1
