r"""
Sequential resampling backend.

This module provides a single-threaded strategy that scores the blocks of
resamples one after another on the calling thread.
"""

from __future__ import annotations

from typing import Callable, Sequence

import numpy as np

from ..estimators import Estimator
from .base import prepare_blocks, worker_resample_chunk

__all__ = ["SequentialBackend"]


class SequentialBackend:
    r"""
    Sequential (single-threaded) resampling backend.

    Suitable for small resample counts, debugging, and estimators that are not
    thread-safe.

    Examples
    --------
    >>> backend = SequentialBackend()
    >>> scores = backend.run(sample, estimators, 1000, np.random.SeedSequence(1), 500, None)  # doctest: +SKIP
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
        Score all blocks on the calling thread.

        Returns
        -------
        np.ndarray
            Unsorted scores with shape ``(len(estimators), n_resamples)``.
        """
        blocks, child_seqs = prepare_blocks(n_resamples, seed_seq, block_size)
        results = np.empty((len(estimators), n_resamples), dtype=float)

        for (i, j), ss in zip(blocks, child_seqs):
            results[:, i:j] = worker_resample_chunk(sample, estimators, j - i, ss)
            if progress_callback:
                progress_callback(j, n_resamples)

        return results
