"""
Restart payload of the phase switch: one integer phase state per vertex.

Each vertex is written as "<int> " to a text stream. Reader and writer must
visit the vertices in the same order; write_phase_states/read_phase_states use
ascending global index over the local vertices of a mesh. File naming and any
framing around the payload belong to the caller.
"""

from __future__ import annotations

import logging
from typing import Iterable, TextIO

from core.types import PhaseState, StaticVertexData

logger = logging.getLogger(__name__)


class CheckpointIOError(OSError):
    """The checkpoint stream cannot be used for the requested vertex."""


def _stream_ok(stream, mode: str) -> bool:
    if stream is None or getattr(stream, "closed", False):
        return False
    check = getattr(stream, "writable" if mode == "w" else "readable", None)
    if check is not None and not check():
        return False
    return True


def _read_token(stream: TextIO) -> str:
    chars = []
    while True:
        c = stream.read(1)
        if not c:
            break
        if c.isspace():
            if chars:
                break
            continue
        chars.append(c)
    return "".join(chars)


def serialize_entity(stream: TextIO, switch, vertex_idx: int) -> None:
    """Write the current phase state of one vertex."""
    if not _stream_ok(stream, "w"):
        raise CheckpointIOError(f"Could not serialize vertex {vertex_idx}")
    state = switch.phase_state(vertex_idx)
    stream.write(f"{int(state)} ")


def deserialize_entity(stream: TextIO, switch, vertex_idx: int) -> None:
    """Read one phase state into a vertex; the old phase state is set to the same value."""
    if not _stream_ok(stream, "r"):
        raise CheckpointIOError(f"Could not deserialize vertex {vertex_idx}")
    token = _read_token(stream)
    if not token:
        raise CheckpointIOError(f"Could not deserialize vertex {vertex_idx}: stream exhausted")
    try:
        state = PhaseState(int(token))
    except ValueError as exc:
        raise CheckpointIOError(f"Could not deserialize vertex {vertex_idx}: invalid token {token!r}") from exc

    data = switch.static_data[vertex_idx]
    if data is None:
        switch.static_data[vertex_idx] = StaticVertexData(phase_state=state, old_phase_state=state)
    else:
        data.phase_state = state
        data.old_phase_state = state


def _order(switch, vertices: Iterable[int] | None) -> list[int]:
    if vertices is None:
        return sorted(int(v) for v in switch.mesh.local_vertices)
    return [int(v) for v in vertices]


def write_phase_states(stream: TextIO, switch, vertices: Iterable[int] | None = None) -> int:
    """Serialize every vertex in traversal order; returns the number written."""
    order = _order(switch, vertices)
    for v in order:
        serialize_entity(stream, switch, v)
    logger.debug("wrote %d phase states", len(order))
    return len(order)


def read_phase_states(stream: TextIO, switch, vertices: Iterable[int] | None = None) -> int:
    """Deserialize every vertex in traversal order; returns the number read."""
    order = _order(switch, vertices)
    for v in order:
        deserialize_entity(stream, switch, v)
    logger.debug("read %d phase states", len(order))
    return len(order)
