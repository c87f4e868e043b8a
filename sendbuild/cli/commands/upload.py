"""
Upload command implementation.

Thin wrapper around UploadService that handles CLI argument parsing
and delegates business logic to the service layer.
"""
import sys
from typing import Optional

import typer

from sendbuild.core.uploader import UploadService
from sendbuild.rich_utils.ui_helpers import configure_logging, get_console
from sendbuild.upload import ApplicationCredential, ProxyConfiguration


def upload_command(
    build_path: str = typer.Argument(..., help="Path of the build to upload, relative to the workspace"),
    source_map: Optional[str] = typer.Option(None, "--source-map", help="Mapping file uploaded alongside the build"),
    api_key: Optional[str] = typer.Option(None, "--api-key", help="Upload API key (overrides DATA_THEOREM_UPLOAD_API_KEY)"),
    release_type: Optional[str] = typer.Option(None, "--release-type", help="PRE_PROD, ENTERPRISE or PUBLIC_STORE"),
    external_id: Optional[str] = typer.Option(None, "--external-id", help="External identifier of the application"),
    artifact_folder: Optional[bool] = typer.Option(None, "--artifact-folder/--workspace-file", help="Build is already stored on this machine"),
    workspace: Optional[str] = typer.Option(None, "-w", "--workspace", help="Workspace root the paths are relative to"),
    remote_command: Optional[str] = typer.Option(None, "--remote-command", help="Command streaming files from a remote agent, e.g. 'ssh agent-01'"),
    proxy_host: Optional[str] = typer.Option(None, "--proxy-host", help="Proxy hostname"),
    proxy_port: Optional[int] = typer.Option(None, "--proxy-port", help="Proxy port"),
    proxy_username: Optional[str] = typer.Option(None, "--proxy-username", help="Proxy username"),
    proxy_password: Optional[str] = typer.Option(None, "--proxy-password", help="Proxy password"),
    proxy_unsecure: bool = typer.Option(False, "--proxy-unsecure", help="Disable certificate verification through the proxy"),
    username: Optional[str] = typer.Option(None, "--username", help="Application login username for the scan"),
    password: Optional[str] = typer.Option(None, "--password", help="Application login password for the scan"),
    comments: Optional[str] = typer.Option(None, "--comments", help="Comments about the application credentials"),
    config_path: Optional[str] = typer.Option(None, "-c", "--config", help="Path to config YAML"),
    verbose: bool = typer.Option(False, "-v", "--verbose", help="Show debug logging"),
):
    """Upload a build to the Data Theorem Upload API."""
    console = get_console()
    configure_logging(verbose, console)

    proxy = None
    if proxy_host:
        if proxy_port is None:
            raise typer.BadParameter("--proxy-port is required with --proxy-host")
        proxy = ProxyConfiguration(
            hostname=proxy_host,
            port=proxy_port,
            username=proxy_username,
            password=proxy_password,
            unsecure_connection=proxy_unsecure,
        )

    credential = None
    if username:
        credential = ApplicationCredential(username=username, password=password or "", comments=comments)

    # Delegate to service layer
    upload_service = UploadService(console=console)
    exit_code = upload_service.execute_upload(
        build_path=build_path,
        api_key=api_key,
        source_map_path=source_map,
        release_type=release_type,
        external_id=external_id,
        artifact_folder=artifact_folder,
        workspace_root=workspace,
        remote_command=remote_command,
        proxy=proxy,
        application_credential=credential,
        config_path=config_path,
    )

    # Exit with appropriate code
    if exit_code != 0:
        sys.exit(exit_code)
