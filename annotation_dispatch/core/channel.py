# annotation_dispatch/core/channel.py
"""One-shot message channel between the dispatcher and a worker process.

Each worker gets its own socket pair. The worker writes exactly one frame
and closes its end; the dispatcher reads that frame once the socket becomes
readable.

Frame layout:
    8-byte big-endian payload length, followed by a pickle payload.

A peer that closes the socket before a complete frame has arrived is
reported as ChannelClosedError (no bytes at all) or ChannelError (a short
frame), so the dispatcher can tell a silent worker death apart from a
delivered result.
"""

import pickle
import socket
import struct
from typing import Any, Optional, Tuple

from .exceptions import ChannelClosedError, ChannelError, handle_spawn_error

HEADER = struct.Struct('!Q')
RECV_SIZE = 64 * 1024


class Channel:
    """One end of a worker socket pair."""

    def __init__(self, sock: socket.socket):
        self._sock = sock
        self._closed = False

    def fileno(self) -> int:
        return self._sock.fileno()

    @property
    def closed(self) -> bool:
        return self._closed

    def set_timeout(self, seconds: Optional[float]) -> None:
        """Bound every blocking read; a stalled read raises TimeoutError."""
        self._sock.settimeout(seconds)

    def send_message(self, message: Any) -> int:
        """Serialize and write one complete frame.

        Returns:
            Number of payload bytes written.

        Raises:
            pickle.PicklingError, TypeError, AttributeError: message is not
                serializable (nothing is written in that case).
            OSError: the peer went away while writing.
        """
        payload = pickle.dumps(message, protocol=pickle.HIGHEST_PROTOCOL)
        self._sock.sendall(HEADER.pack(len(payload)) + payload)
        return len(payload)

    def recv_message(self) -> Any:
        """Block until one complete frame has been read and decode it."""
        header = self._read_exactly(HEADER.size, allow_empty=True)
        (length,) = HEADER.unpack(header)
        payload = self._read_exactly(length, allow_empty=False)

        try:
            return pickle.loads(payload)
        except Exception as e:
            raise ChannelError(f"Undecodable frame payload ({length} bytes): {e}", e) from e

    def _read_exactly(self, size: int, allow_empty: bool) -> bytes:
        view = bytearray()
        while len(view) < size:
            try:
                data = self._sock.recv(min(RECV_SIZE, size - len(view)))
            except ConnectionResetError as e:
                raise ChannelClosedError("Channel reset by peer", e) from e
            if not data:
                if allow_empty and not view:
                    raise ChannelClosedError("Channel closed before any data was sent")
                raise ChannelError(
                    f"Channel closed mid-frame: expected {size} bytes, got {len(view)}"
                )
            view.extend(data)
        return bytes(view)

    def close_write(self) -> None:
        """Signal end of stream to the peer while keeping the socket open."""
        try:
            self._sock.shutdown(socket.SHUT_WR)
        except OSError:
            # peer already gone; nothing left to signal
            pass

    def close(self) -> None:
        if not self._closed:
            self._closed = True
            self._sock.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False

    def __repr__(self) -> str:
        state = 'closed' if self._closed else f'fd={self._sock.fileno()}'
        return f"Channel({state})"


@handle_spawn_error("Opening worker channel")
def open_channel() -> Tuple[Channel, Channel]:
    """Create a connected pair of channels.

    Returns:
        (parent_end, child_end). The parent keeps the first end and must
        close its copy of the second once the worker has been started.
    """
    parent_sock, child_sock = socket.socketpair(socket.AF_UNIX, socket.SOCK_STREAM)
    return Channel(parent_sock), Channel(child_sock)
