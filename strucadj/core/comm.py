"""Explicit communication context for reductions."""

import logging
from contextlib import contextmanager
from typing import Any, Iterator, Optional

logger = logging.getLogger(__name__)


class SerialComm:
    """
    Single-process communicator.

    Mirrors the subset of the mpi4py communicator interface used here
    (``rank``, ``size``, ``allreduce`` with a default sum), so an mpi4py
    communicator can be passed wherever a ``SerialComm`` is accepted.
    """

    rank = 0
    size = 1

    def allreduce(self, value: Any, op: Optional[Any] = None) -> Any:
        """Sum-reduce across processes (identity for one process)."""
        return value

    def barrier(self) -> None:
        return None


def default_comm(comm: Optional[Any] = None) -> Any:
    """Return ``comm`` or a serial communicator."""
    return SerialComm() if comm is None else comm


@contextmanager
def comm_context(comm: Optional[Any] = None) -> Iterator[Any]:
    """Own the communicator for the duration of a driver run."""
    comm = default_comm(comm)
    logger.debug("communication context opened (rank %d of %d)", comm.rank, comm.size)
    try:
        yield comm
    finally:
        comm.barrier()
        logger.debug("communication context closed")
