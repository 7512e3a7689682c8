"""
Collective reductions used by the phase switch, diagnostics and bounding-box computation.

The core never talks to MPI directly; it receives an object with
reduce_sum / reduce_max / reduce_min / reduce_or. SerialReduction is the
single-process no-op, MPIReduction wraps an mpi4py communicator.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

import numpy as np

from parallel.mpi_bootstrap import bootstrap_mpi


@runtime_checkable
class Reduction(Protocol):
    """Blocking collectives over all mesh partitions."""

    rank: int
    size: int

    def reduce_sum(self, value): ...

    def reduce_max(self, value): ...

    def reduce_min(self, value): ...

    def reduce_or(self, flag: bool) -> bool: ...


class SerialReduction:
    """Single partition: every reduction returns its argument."""

    rank = 0
    size = 1

    def reduce_sum(self, value):
        return _copy_value(value)

    def reduce_max(self, value):
        return _copy_value(value)

    def reduce_min(self, value):
        return _copy_value(value)

    def reduce_or(self, flag: bool) -> bool:
        return bool(flag)


class MPIReduction:
    """Reductions over an mpi4py communicator (COMM_WORLD by default)."""

    def __init__(self, comm=None) -> None:
        bootstrap_mpi()
        from mpi4py import MPI

        self._MPI = MPI
        self.comm = comm if comm is not None else MPI.COMM_WORLD
        self.rank = int(self.comm.Get_rank())
        self.size = int(self.comm.Get_size())

    def _allreduce(self, value, op):
        if np.ndim(value) == 0:
            return self.comm.allreduce(value, op=op)
        loc = np.ascontiguousarray(value, dtype=np.float64)
        out = np.empty_like(loc)
        self.comm.Allreduce([loc, self._MPI.DOUBLE], [out, self._MPI.DOUBLE], op=op)
        return out

    def reduce_sum(self, value):
        return self._allreduce(value, self._MPI.SUM)

    def reduce_max(self, value):
        return self._allreduce(value, self._MPI.MAX)

    def reduce_min(self, value):
        return self._allreduce(value, self._MPI.MIN)

    def reduce_or(self, flag: bool) -> bool:
        return bool(self.comm.allreduce(bool(flag), op=self._MPI.LOR))


def _copy_value(value):
    if np.ndim(value) == 0:
        return value
    return np.array(value, dtype=np.float64, copy=True)


def build_reduction(comm=None):
    """MPIReduction when more than one rank is running, otherwise SerialReduction."""
    if comm is not None:
        return MPIReduction(comm)
    bootstrap_mpi()
    from mpi4py import MPI

    if MPI.COMM_WORLD.Get_size() > 1:
        return MPIReduction(MPI.COMM_WORLD)
    return SerialReduction()
