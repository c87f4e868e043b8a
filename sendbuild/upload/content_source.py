"""
Content Sources for Build Uploads

Resolves a file reference from the job workspace to something that can be
streamed into the upload body. A workspace either lives on this machine, in
which case files are read directly, or on a remote build agent reachable only
through a streaming channel. Remote content is pulled chunk by chunk while the
request is being sent and is never loaded fully in memory.
"""

import logging
import os
import shlex
import subprocess
import tempfile
import threading
from abc import ABC, abstractmethod
from pathlib import PurePosixPath
from typing import BinaryIO, Iterator, List, Optional, Protocol, runtime_checkable

from .errors import RemoteChannelError, StreamCancelledError

logger = logging.getLogger(__name__)

DEFAULT_CHUNK_SIZE = 64 * 1024


@runtime_checkable
class RemoteChannel(Protocol):
    """Streaming access to files on a remote build agent"""

    def open_stream(self, path: str) -> BinaryIO:
        """Open a readable binary stream for a file on the agent"""
        ...

    def describe(self) -> str:
        """Human-readable name of the agent, used in progress output"""
        ...


class _ProcessStream:
    """Binary stream over a child process stdout that checks the exit status on close"""

    def __init__(self, process: subprocess.Popen, path: str, stderr_file: BinaryIO):
        self._process = process
        self._path = path
        self._stderr_file = stderr_file
        self.closed = False

    def read(self, size: int = -1) -> bytes:
        return self._process.stdout.read(size)

    def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        self._process.stdout.close()
        returncode = self._process.wait()
        self._stderr_file.seek(0)
        stderr = self._stderr_file.read()
        self._stderr_file.close()
        if returncode != 0:
            raise RemoteChannelError(
                f"Remote read of {self._path} failed with exit code {returncode}: "
                f"{stderr.decode('utf-8', errors='replace').strip()}",
                path=self._path,
                returncode=returncode,
            )

    def abort(self) -> None:
        """Kill the reader without raising on its exit status"""
        if self.closed:
            return
        self.closed = True
        self._process.kill()
        self._process.stdout.close()
        self._process.wait()
        self._stderr_file.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if exc_type is None:
            self.close()
        else:
            self.abort()


class CommandChannel:
    """Remote channel that streams files through a command such as `ssh agent`"""

    def __init__(self, command_prefix: List[str], read_command: str = "cat"):
        self.command_prefix = list(command_prefix)
        self.read_command = read_command

    @classmethod
    def from_string(cls, command: str) -> "CommandChannel":
        return cls(shlex.split(command))

    def build_command(self, path: str) -> List[str]:
        # The remote shell sees the path as one quoted word
        if self.command_prefix:
            return self.command_prefix + [f"{self.read_command} {shlex.quote(path)}"]
        return [self.read_command, path]

    def open_stream(self, path: str) -> _ProcessStream:
        command = self.build_command(path)
        logger.debug(f"Opening remote stream: {command}")
        # stderr goes to a file so a chatty command never blocks on a full pipe
        stderr_file = tempfile.TemporaryFile()
        try:
            process = subprocess.Popen(
                command,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=stderr_file,
            )
        except OSError as e:
            stderr_file.close()
            raise RemoteChannelError(
                f"Unable to start remote channel command {command[0]}: {e}",
                path=path,
            ) from e
        return _ProcessStream(process, path, stderr_file)

    def describe(self) -> str:
        return " ".join(self.command_prefix) or "local command"


class ContentSource(ABC):
    """A byte-producing file reference"""

    path: str

    @property
    def filename(self) -> str:
        return PurePosixPath(self.path.replace("\\", "/")).name

    @property
    @abstractmethod
    def is_remote(self) -> bool:
        ...

    @property
    def size(self) -> Optional[int]:
        """Total size in bytes when known up front"""
        return None

    @abstractmethod
    def open(self) -> BinaryIO:
        ...


class LocalContentSource(ContentSource):
    """File readable directly from this machine"""

    def __init__(self, path: str):
        self.path = str(path)

    @property
    def is_remote(self) -> bool:
        return False

    @property
    def size(self) -> Optional[int]:
        try:
            return os.path.getsize(self.path)
        except OSError:
            return None

    def open(self) -> BinaryIO:
        return open(self.path, "rb")

    def __repr__(self) -> str:
        return f"LocalContentSource({self.path!r})"


class RemoteContentSource(ContentSource):
    """File on a remote agent, pulled through its channel on demand"""

    def __init__(self, channel: RemoteChannel, path: str):
        self.channel = channel
        self.path = str(path)

    @property
    def is_remote(self) -> bool:
        return True

    def open(self) -> BinaryIO:
        return self.channel.open_stream(self.path)

    def __repr__(self) -> str:
        return f"RemoteContentSource({self.channel.describe()!r}, {self.path!r})"


class Workspace:
    """Job workspace that file references are resolved against"""

    def __init__(self, root: str = ".", channel: Optional[RemoteChannel] = None):
        self.root = str(root)
        self.channel = channel

    @property
    def is_remote(self) -> bool:
        return self.channel is not None

    def child(self, path: str) -> str:
        """Resolve a reference relative to the workspace root"""
        if self.is_remote:
            candidate = PurePosixPath(path)
            if candidate.is_absolute():
                return str(candidate)
            return str(PurePosixPath(self.root) / candidate)
        if os.path.isabs(path):
            return path
        return os.path.join(self.root, path)

    def resolve(self, path: str) -> ContentSource:
        """Pick the read strategy for a file reference"""
        resolved = self.child(path)
        if self.channel is not None:
            return RemoteContentSource(self.channel, resolved)
        return LocalContentSource(resolved)

    def local(self, path: str) -> LocalContentSource:
        """Reference a file already stored permanently on this machine"""
        return LocalContentSource(path)


def iter_chunks(
    source: ContentSource,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
    cancel_event: Optional[threading.Event] = None,
) -> Iterator[bytes]:
    """Yield the content of a source lazily, honouring cancellation between reads"""
    stream = source.open()
    try:
        while True:
            if cancel_event is not None and cancel_event.is_set():
                raise StreamCancelledError(
                    f"Upload of {source.filename} was cancelled",
                    path=source.path,
                )
            chunk = stream.read(chunk_size)
            if not chunk:
                break
            yield chunk
    except BaseException:
        abort = getattr(stream, "abort", None)
        if abort is not None:
            abort()
        else:
            stream.close()
        raise
    else:
        stream.close()
