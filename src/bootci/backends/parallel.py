r"""
Parallel resampling backends.

This module provides:

Classes
    :class:`ThreadBackend`: Thread-based parallelism using ThreadPoolExecutor
    :class:`ProcessBackend`: Process-based parallelism using ProcessPoolExecutor

Both score the same blocks with the same per-block seeds as
:class:`~bootci.backends.sequential.SequentialBackend`, so results do not depend
on the backend or on completion order.
"""

from __future__ import annotations

import logging
import multiprocessing as mp
from concurrent.futures import ProcessPoolExecutor, ThreadPoolExecutor, as_completed
from typing import Callable, Sequence

import numpy as np

from ..estimators import Estimator
from .base import prepare_blocks, worker_resample_chunk

logger = logging.getLogger(__name__)

__all__ = [
    "ThreadBackend",
    "ProcessBackend",
]


class ThreadBackend:
    r"""
    Thread-based parallel resampling backend.

    Uses :class:`concurrent.futures.ThreadPoolExecutor`. Effective for the
    built-in estimators, whose batch scoring runs inside NumPy with the GIL
    released.

    Parameters
    ----------
    n_workers : int
        Number of worker threads to use.

    Examples
    --------
    >>> backend = ThreadBackend(n_workers=4)
    >>> scores = backend.run(sample, estimators, 100_000, seed_seq, 5_000, None)  # doctest: +SKIP
    """

    def __init__(self, n_workers: int):
        if n_workers <= 0:
            raise ValueError("n_workers must be positive")
        self.n_workers = n_workers

    def run(
        self,
        sample: np.ndarray,
        estimators: Sequence[Estimator],
        n_resamples: int,
        seed_seq: np.random.SeedSequence,
        block_size: int,
        progress_callback: Callable[[int, int], None] | None,
    ) -> np.ndarray:
        r"""
        Score the blocks in parallel using threads.

        Returns
        -------
        np.ndarray
            Unsorted scores with shape ``(len(estimators), n_resamples)``.
        """
        blocks, child_seqs = prepare_blocks(n_resamples, seed_seq, block_size)
        results = np.empty((len(estimators), n_resamples), dtype=float)
        completed = 0
        max_workers = min(self.n_workers, len(blocks))
        logger.debug("Thread pool: %d workers for %d blocks", max_workers, len(blocks))

        def _work(args):
            (a, b), ss = args
            return (a, b), worker_resample_chunk(sample, estimators, b - a, ss)

        with ThreadPoolExecutor(max_workers=max_workers) as ex:
            futs = [ex.submit(_work, (blk, ss)) for blk, ss in zip(blocks, child_seqs)]
            for f in as_completed(futs):
                (i, j), arr = f.result()
                results[:, i:j] = arr
                completed += j - i
                if progress_callback:
                    progress_callback(completed, n_resamples)

        return results


class ProcessBackend:
    r"""
    Process-based parallel resampling backend.

    Uses :class:`concurrent.futures.ProcessPoolExecutor` with the spawn context.
    Worth its start-up cost for expensive pure-Python estimators.

    Parameters
    ----------
    n_workers : int
        Number of worker processes to use.

    Notes
    -----
    The sample and every estimator are pickled to the workers, so custom
    estimators must be module-level objects (no lambdas or closures).

    Examples
    --------
    >>> backend = ProcessBackend(n_workers=4)
    >>> scores = backend.run(sample, estimators, 100_000, seed_seq, 5_000, None)  # doctest: +SKIP
    """

    def __init__(self, n_workers: int):
        if n_workers <= 0:
            raise ValueError("n_workers must be positive")
        self.n_workers = n_workers

    def run(
        self,
        sample: np.ndarray,
        estimators: Sequence[Estimator],
        n_resamples: int,
        seed_seq: np.random.SeedSequence,
        block_size: int,
        progress_callback: Callable[[int, int], None] | None,
    ) -> np.ndarray:
        r"""
        Score the blocks in parallel using processes.

        Returns
        -------
        np.ndarray
            Unsorted scores with shape ``(len(estimators), n_resamples)``.
        """
        blocks, child_seqs = prepare_blocks(n_resamples, seed_seq, block_size)
        results = np.empty((len(estimators), n_resamples), dtype=float)
        completed = 0
        max_workers = min(self.n_workers, len(blocks))
        logger.debug("Process pool: %d workers for %d blocks", max_workers, len(blocks))
        estimator_list = list(estimators)

        with ProcessPoolExecutor(
            max_workers=max_workers,
            mp_context=mp.get_context("spawn"),
        ) as ex:
            futs = {}
            for (i, j), ss in zip(blocks, child_seqs):
                f = ex.submit(worker_resample_chunk, sample, estimator_list, j - i, ss)
                futs[f] = (i, j)
            try:
                for f in as_completed(futs):
                    i, j = futs[f]
                    results[:, i:j] = f.result()
                    completed += j - i
                    if progress_callback:
                        progress_callback(completed, n_resamples)  # pragma: no cover
            except KeyboardInterrupt:  # pragma: no cover
                for f in futs:
                    f.cancel()
                raise

        return results
