"""
Tests for the Multipart Form Builder

Tests part ordering, optional fields, the wire format of each part and
lazy streaming of remote content.
"""

import io
import os
import shutil
import tempfile
import threading
import types

import pytest

from sendbuild.upload.content_source import LocalContentSource, RemoteContentSource, Workspace
from sendbuild.upload.errors import StreamCancelledError
from sendbuild.upload.models import ApplicationCredential, UploadRequest
from sendbuild.upload.multipart import (
    UPLOAD_BOUNDARY,
    MultipartFormBuilder,
    StreamingMultipartBody,
    build_upload_form,
)


class EndlessStream:
    """Stream that never ends and counts how often it was read"""

    def __init__(self):
        self.reads = 0
        self.closed = False

    def read(self, size=-1):
        self.reads += 1
        return b"x" * size

    def close(self):
        self.closed = True


class EndlessChannel:
    """Remote channel serving endless streams"""

    def __init__(self):
        self.streams = []

    def open_stream(self, path):
        stream = EndlessStream()
        self.streams.append(stream)
        return stream

    def describe(self):
        return "fake-agent"


class TestMultipartFormBuilder:
    """Test cases for the generic builder"""

    def setup_method(self):
        """Setup for each test"""
        self.temp_dir = tempfile.mkdtemp()
        self.build_path = os.path.join(self.temp_dir, "app.ipa")
        with open(self.build_path, "wb") as f:
            f.write(b"\x00\x01IPA")

    def teardown_method(self):
        """Clean up temporary files"""
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def test_content_type_uses_fixed_boundary(self):
        builder = MultipartFormBuilder()
        assert builder.content_type == "multipart/form-data; boundary=jenkinsautouploadboundary"
        assert builder.boundary == UPLOAD_BOUNDARY

    def test_text_part_wire_format(self):
        """Text parts carry only a Content-Disposition header"""
        builder = MultipartFormBuilder()
        builder.add_text("release_type", "PRE_PROD")

        body = b"".join(builder.iter_body())

        assert body == (
            b"--jenkinsautouploadboundary\r\n"
            b'Content-Disposition: form-data; name="release_type"\r\n'
            b"\r\n"
            b"PRE_PROD\r\n"
            b"--jenkinsautouploadboundary--\r\n"
        )

    def test_file_part_wire_format(self):
        """File parts carry the base name and the declared content type"""
        builder = MultipartFormBuilder()
        builder.add_file("file", LocalContentSource(self.build_path))

        body = b"".join(builder.iter_body())

        assert body == (
            b"--jenkinsautouploadboundary\r\n"
            b'Content-Disposition: form-data; name="file"; filename="app.ipa"\r\n'
            b"Content-Type: application/octet-stream\r\n"
            b"\r\n"
            b"\x00\x01IPA\r\n"
            b"--jenkinsautouploadboundary--\r\n"
        )

    def test_content_length_matches_body(self):
        """Known sizes give an exact Content-Length"""
        builder = MultipartFormBuilder()
        builder.add_file("file", LocalContentSource(self.build_path))
        builder.add_text("release_type", "PRE_PROD")
        builder.add_text("external_id", "ünïcode")

        body = builder.build()

        assert isinstance(body, StreamingMultipartBody)
        assert len(body) == len(b"".join(body))

    def test_remote_part_streams_lazily(self):
        """The body starts flowing before the remote content is exhausted"""
        channel = EndlessChannel()
        builder = MultipartFormBuilder(chunk_size=1024)
        builder.add_file("file", RemoteContentSource(channel, "/agent/ws/huge.apk"))

        assert builder.content_length is None
        body = builder.build()
        assert isinstance(body, types.GeneratorType)

        delimiter = next(body)
        headers = next(body)
        first_chunk = next(body)

        assert delimiter == b"--jenkinsautouploadboundary\r\n"
        assert b'filename="huge.apk"' in headers
        assert first_chunk == b"x" * 1024
        assert channel.streams[0].reads == 1

        body.close()
        assert channel.streams[0].closed is True

    def test_cancellation_stops_streaming(self):
        """Setting the cancel event aborts the read with StreamCancelledError"""
        cancel_event = threading.Event()
        channel = EndlessChannel()
        builder = MultipartFormBuilder(chunk_size=16, cancel_event=cancel_event)
        builder.add_file("file", RemoteContentSource(channel, "huge.apk"))

        body = builder.iter_body()
        next(body)
        next(body)
        next(body)
        cancel_event.set()

        with pytest.raises(StreamCancelledError):
            next(body)
        assert channel.streams[0].closed is True


class TestBuildUploadForm:
    """Test cases for the upload form assembled from a request"""

    def setup_method(self):
        """Setup for each test"""
        self.temp_dir = tempfile.mkdtemp()
        for name, content in (("app.apk", b"APK"), ("mapping.txt", b"map")):
            with open(os.path.join(self.temp_dir, name), "wb") as f:
                f.write(content)
        self.workspace = Workspace(self.temp_dir)

    def teardown_method(self):
        """Clean up temporary files"""
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def test_minimal_form(self):
        """Only the build and release type without optional inputs"""
        request = UploadRequest(api_key="k", build_path="app.apk")

        form = build_upload_form(request, self.workspace)

        assert form.field_names == ["file", "release_type"]
        assert form.get_part("release_type").value == "PRE_PROD"
        assert form.get_part("file").content_type == "application/octet-stream"

    def test_full_form_order(self):
        """Build, mapping file, credentials, release type, external id"""
        request = UploadRequest(
            api_key="k",
            build_path="app.apk",
            source_map_path="mapping.txt",
            release_type="PUBLIC_STORE",
            external_id="store-id",
            application_credential=ApplicationCredential("user", "pass", "notes"),
        )

        form = build_upload_form(request, self.workspace)

        assert form.field_names == [
            "file", "sourcemap", "username", "password", "comments", "release_type", "external_id",
        ]
        assert form.get_part("sourcemap").content_type == "text/plain"

    def test_empty_external_id_is_omitted(self):
        request = UploadRequest(api_key="k", build_path="app.apk", external_id="")

        form = build_upload_form(request, self.workspace)

        assert "external_id" not in form.field_names

    def test_credential_without_comments(self):
        request = UploadRequest(
            api_key="k",
            build_path="app.apk",
            application_credential=ApplicationCredential("user", "pass"),
        )

        form = build_upload_form(request, self.workspace)

        assert form.field_names == ["file", "username", "password", "release_type"]

    def test_workspace_files_resolve_against_root(self):
        request = UploadRequest(api_key="k", build_path="app.apk", source_map_path="mapping.txt")

        form = build_upload_form(request, self.workspace)

        assert form.get_part("file").source.path == os.path.join(self.temp_dir, "app.apk")
        assert form.get_part("sourcemap").source.path == os.path.join(self.temp_dir, "mapping.txt")

    def test_remote_workspace_streams_build_and_mapping(self):
        """With a remote agent both files become streaming parts"""
        workspace = Workspace("/agent/ws", channel=EndlessChannel())
        request = UploadRequest(api_key="k", build_path="out/app.apk", source_map_path="mapping.txt")

        form = build_upload_form(request, workspace)

        assert form.get_part("file").source.is_remote
        assert form.get_part("file").source.path == "/agent/ws/out/app.apk"
        assert form.get_part("sourcemap").source.is_remote
        assert form.content_length is None

    def test_artifact_folder_build_stays_local_on_remote_workspace(self):
        """Archived builds are read directly even when the workspace is remote"""
        workspace = Workspace("/agent/ws", channel=EndlessChannel())
        build_path = os.path.join(self.temp_dir, "app.apk")
        request = UploadRequest(api_key="k", build_path=build_path, is_build_stored_in_artifact_folder=True)

        form = build_upload_form(request, workspace)

        assert form.get_part("file").source.is_remote is False
        assert form.get_part("file").source.path == build_path

    def test_progress_lines(self):
        """File paths are reported to the console sink"""
        from rich.console import Console

        output = io.StringIO()
        request = UploadRequest(api_key="k", build_path="app.apk", source_map_path="mapping.txt")

        build_upload_form(request, self.workspace, console=Console(file=output))

        assert "Build file path is: app.apk" in output.getvalue()
        assert "Mapping file path is: mapping.txt" in output.getvalue()
