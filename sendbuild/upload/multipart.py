"""
Multipart Form Builder for Build Uploads

Assembles the multipart/form-data body sent to the one-time upload URL.
The body is produced lazily: file parts are streamed from their content
source while requests sends the request, so large builds on remote agents
never have to fit in memory.
"""

import logging
import threading
from dataclasses import dataclass
from typing import Iterator, List, Optional

from urllib3.fields import RequestField

from .content_source import DEFAULT_CHUNK_SIZE, ContentSource, Workspace, iter_chunks
from .models import UploadRequest

logger = logging.getLogger(__name__)

UPLOAD_BOUNDARY = "jenkinsautouploadboundary"
BINARY_CONTENT_TYPE = "application/octet-stream"
TEXT_CONTENT_TYPE = "text/plain"


@dataclass
class FormPart:
    """One named part of the form, either a text value or a file source"""
    name: str
    value: Optional[str] = None
    source: Optional[ContentSource] = None
    content_type: Optional[str] = None

    @property
    def is_file(self) -> bool:
        return self.source is not None

    def render_headers(self) -> bytes:
        # Browser-compatible headers: disposition always, type only for files
        if self.is_file:
            field = RequestField(name=self.name, data=b"", filename=self.source.filename)
            field.make_multipart(content_type=self.content_type)
        else:
            field = RequestField(name=self.name, data=self.value)
            field.make_multipart()
        return field.render_headers().encode("utf-8")


class StreamingMultipartBody:
    """Iterable body with a known Content-Length, streamed on iteration"""

    def __init__(self, builder: "MultipartFormBuilder", length: int):
        self._builder = builder
        self._length = length

    def __len__(self) -> int:
        return self._length

    def __iter__(self) -> Iterator[bytes]:
        return self._builder.iter_body()


class MultipartFormBuilder:
    """Builds a streamed multipart/form-data body with a fixed boundary"""

    def __init__(
        self,
        boundary: str = UPLOAD_BOUNDARY,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        cancel_event: Optional[threading.Event] = None,
    ):
        self.boundary = boundary
        self.chunk_size = chunk_size
        self.cancel_event = cancel_event
        self.parts: List[FormPart] = []

    def add_file(self, name: str, source: ContentSource, content_type: str = BINARY_CONTENT_TYPE) -> "MultipartFormBuilder":
        self.parts.append(FormPart(name=name, source=source, content_type=content_type))
        return self

    def add_text(self, name: str, value: str) -> "MultipartFormBuilder":
        self.parts.append(FormPart(name=name, value=value))
        return self

    @property
    def content_type(self) -> str:
        return f"multipart/form-data; boundary={self.boundary}"

    @property
    def field_names(self) -> List[str]:
        return [part.name for part in self.parts]

    def get_part(self, name: str) -> Optional[FormPart]:
        for part in self.parts:
            if part.name == name:
                return part
        return None

    def _delimiter(self) -> bytes:
        return f"--{self.boundary}\r\n".encode("utf-8")

    def _closing_delimiter(self) -> bytes:
        return f"--{self.boundary}--\r\n".encode("utf-8")

    def iter_body(self) -> Iterator[bytes]:
        """Yield the encoded body, reading file parts only as they are reached"""
        for part in self.parts:
            yield self._delimiter()
            yield part.render_headers()
            if part.is_file:
                logger.debug(f"Streaming part '{part.name}' from {part.source!r}")
                yield from iter_chunks(part.source, self.chunk_size, self.cancel_event)
            else:
                yield part.value.encode("utf-8")
            yield b"\r\n"
        yield self._closing_delimiter()

    @property
    def content_length(self) -> Optional[int]:
        """Total body size, or None when a part's size is unknown before reading"""
        total = 0
        for part in self.parts:
            total += len(self._delimiter()) + len(part.render_headers()) + 2
            if part.is_file:
                size = part.source.size
                if size is None:
                    return None
                total += size
            else:
                total += len(part.value.encode("utf-8"))
        return total + len(self._closing_delimiter())

    def build(self):
        """Body for requests: sized when every length is known, chunked otherwise"""
        length = self.content_length
        if length is None:
            return self.iter_body()
        return StreamingMultipartBody(self, length)


def build_upload_form(
    request: UploadRequest,
    workspace: Workspace,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
    cancel_event: Optional[threading.Event] = None,
    console=None,
) -> MultipartFormBuilder:
    """Assemble the upload form for a build request"""
    builder = MultipartFormBuilder(chunk_size=chunk_size, cancel_event=cancel_event)

    if console is not None:
        console.print(f"Build file path is: {request.build_path}")
    if request.is_build_stored_in_artifact_folder:
        # Archived artifacts are always on this machine
        build_source = workspace.local(request.build_path)
    else:
        build_source = workspace.resolve(request.build_path)
    _report_source(build_source, console)
    builder.add_file("file", build_source, BINARY_CONTENT_TYPE)

    if request.source_map_path is not None:
        if console is not None:
            console.print(f"Mapping file path is: {request.source_map_path}")
        source_map = workspace.resolve(request.source_map_path)
        _report_source(source_map, console)
        builder.add_file("sourcemap", source_map, TEXT_CONTENT_TYPE)

    if request.application_credential is not None:
        request.application_credential.add_to_form(builder)

    builder.add_text("release_type", request.release_type)

    if request.external_id:
        builder.add_text("external_id", request.external_id)

    return builder


def _report_source(source: ContentSource, console) -> None:
    if source.is_remote:
        logger.debug(f"{source.filename} will be streamed from the remote agent")
        if console is not None:
            console.print(f"Streaming {source.filename} from {source.channel.describe()}", style="dim")
    else:
        logger.debug(f"{source.filename} will be read directly from {source.path}")
