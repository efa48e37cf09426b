r"""
Base classes and utilities for resampling backends.

This module provides:

Protocol
    :class:`ResamplingBackend`: Interface for bootstrap resampling strategies

Functions
    :func:`make_blocks`: Chunking helper for work distribution
    :func:`prepare_blocks`: Blocks plus one independent seed per block
    :func:`worker_resample_chunk`: Top-level worker that scores one block of resamples

"""

from __future__ import annotations

from typing import Callable, Protocol, Sequence

import numpy as np

from ..estimators import Estimator, supports_batch

__all__ = [
    "ResamplingBackend",
    "make_blocks",
    "prepare_blocks",
    "worker_resample_chunk",
]

# Upper bound on index-matrix cells drawn at once inside a block.
_MAX_CELLS = 2_000_000


def make_blocks(n: int, block_size: int = 5_000) -> list[tuple[int, int]]:
    r"""
    Partition an integer range :math:`[0, n)` into half-open blocks :math:`(i, j)`.

    Parameters
    ----------
    n : int
        Total number of items.
    block_size : int, default: 5_000
        Target block length.

    Returns
    -------
    list of tuple[int, int]
        List of ``(i, j)`` index pairs covering ``[0, n)``.

    Examples
    --------
    >>> make_blocks(5, block_size=2)
    [(0, 2), (2, 4), (4, 5)]
    """
    if block_size <= 0:
        raise ValueError("block_size must be > 0")
    blocks = []
    i = 0
    while i < n:
        j = min(i + block_size, n)
        blocks.append((i, j))
        i = j
    return blocks


def prepare_blocks(
    n_resamples: int, seed_seq: np.random.SeedSequence, block_size: int
) -> tuple[list[tuple[int, int]], list[np.random.SeedSequence]]:
    r"""
    Split the resamples into blocks and spawn one child seed per block.

    The layout depends only on ``n_resamples`` and ``block_size``, never on the
    number of workers, so every backend draws the same resamples for the same
    seed.
    """
    blocks = make_blocks(n_resamples, block_size)
    return blocks, seed_seq.spawn(len(blocks))


def worker_resample_chunk(
    sample: np.ndarray,
    estimators: Sequence[Estimator],
    n_rows: int,
    seed_seq: np.random.SeedSequence,
) -> np.ndarray:
    r"""
    Draw ``n_rows`` bootstrap resamples and score every estimator on each.

    Parameters
    ----------
    sample : ndarray
        Original sample (read-only).
    estimators : sequence of Estimator
        Statistics to evaluate. Must be picklable for the process backend.
    n_rows : int
        Number of resamples in this block.
    seed_seq : :class:`numpy.random.SeedSequence`
        Seed for an **independent** RNG stream in this worker.

    Returns
    -------
    ndarray
        Array of shape ``(len(estimators), n_rows)``; row ``e`` holds the scores of
        ``estimators[e]`` in resample order.

    Notes
    -----
    Indices are drawn as a ``(rows, n)`` matrix from a :class:`numpy.random.Philox`
    stream. Estimators that support batch scoring receive the gathered matrix;
    the rest are called once per resample on a single reused scratch buffer that
    is exposed to them read-only.
    """
    rng = np.random.Generator(np.random.Philox(seed_seq))
    n = sample.size
    out = np.empty((len(estimators), n_rows), dtype=float)

    batch_ids = [e for e, est in enumerate(estimators) if supports_batch(est)]
    scalar_ids = [e for e, est in enumerate(estimators) if e not in batch_ids]

    scratch = np.empty(n, dtype=float)
    scratch_view = scratch.view()
    scratch_view.flags.writeable = False

    step = max(1, _MAX_CELLS // max(1, n))
    for start in range(0, n_rows, step):
        stop = min(start + step, n_rows)
        idx = rng.integers(0, n, size=(stop - start, n))

        if batch_ids:
            rows = sample[idx]
            rows.flags.writeable = False
            for e in batch_ids:
                out[e, start:stop] = estimators[e].calculate_batch(rows)  # type: ignore[attr-defined]

        if scalar_ids:
            for r in range(stop - start):
                np.take(sample, idx[r], out=scratch)
                for e in scalar_ids:
                    out[e, start + r] = float(estimators[e].calculate(scratch_view))

    return out


class ResamplingBackend(Protocol):
    r"""
    Protocol defining the interface for resampling backends.

    Backends decide where the blocks of resamples are scored (calling thread,
    thread pool, process pool) and report progress. They never decide *what* is
    drawn: that is fixed by the block layout and the per-block seeds.
    """

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
        Score every estimator on ``n_resamples`` bootstrap resamples.

        Parameters
        ----------
        sample : ndarray
            Original sample.
        estimators : sequence of Estimator
            Statistics to evaluate.
        n_resamples : int
            Number of resamples to draw.
        seed_seq : SeedSequence
            Root seed; one child is spawned per block.
        block_size : int
            Resamples per block.
        progress_callback : callable or None
            Optional callback ``f(completed, total)`` for progress reporting.

        Returns
        -------
        np.ndarray
            Unsorted scores with shape ``(len(estimators), n_resamples)``.
        """
