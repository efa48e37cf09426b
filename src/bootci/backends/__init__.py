"""
Resampling backends for the bootstrap engine.

This subpackage provides pluggable execution strategies:

CPU Backends
    :class:`SequentialBackend`: Single-threaded execution
    :class:`ThreadBackend`: Thread-based parallelism
    :class:`ProcessBackend`: Process-based parallelism

Utilities
    :func:`make_blocks`: Chunking helper for work distribution
    :func:`prepare_blocks`: Blocks plus independent per-block seeds
    :func:`worker_resample_chunk`: Top-level worker for process pools
    :func:`create_backend`: Build a backend from its name

Protocol
    :class:`ResamplingBackend`: Interface for custom backends
"""

from __future__ import annotations

import multiprocessing as mp
from typing import Optional

from .base import ResamplingBackend, make_blocks, prepare_blocks, worker_resample_chunk
from .parallel import ProcessBackend, ThreadBackend
from .sequential import SequentialBackend

BACKEND_NAMES = ("sequential", "thread", "process")


def create_backend(name: str, n_workers: Optional[int] = None) -> ResamplingBackend:
    r"""
    Instantiate a backend by name.

    Parameters
    ----------
    name : {"sequential", "thread", "process"}
        Backend to build.
    n_workers : int, optional
        Worker count for the parallel backends; defaults to the CPU count.

    Raises
    ------
    ValueError
        If ``name`` is unknown.
    """
    if name == "sequential":
        return SequentialBackend()
    if name not in ("thread", "process"):
        raise ValueError(f"backend must be one of {BACKEND_NAMES}, got '{name}'")
    workers = n_workers if n_workers is not None else mp.cpu_count()
    if name == "thread":
        return ThreadBackend(workers)
    return ProcessBackend(workers)


__all__ = [
    # Protocol
    "ResamplingBackend",
    # CPU Backends
    "SequentialBackend",
    "ThreadBackend",
    "ProcessBackend",
    # Utility Functions
    "BACKEND_NAMES",
    "create_backend",
    "make_blocks",
    "prepare_blocks",
    "worker_resample_chunk",
]
