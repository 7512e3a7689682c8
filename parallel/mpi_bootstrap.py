from __future__ import annotations

_BOOTSTRAPPED = False


def bootstrap_mpi() -> None:
    """
    Initialize mpi4py once, before any communicator is requested.

    mpi4py initializes MPI on first import; importing it here keeps the
    initialization point in one place for drivers and reductions.
    """
    global _BOOTSTRAPPED
    if _BOOTSTRAPPED:
        return
    _BOOTSTRAPPED = True

    from mpi4py import MPI  # noqa: F401
