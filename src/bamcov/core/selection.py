"""
Length-weighted order statistics over the run stream for BamCov.

Both methods answer the same question: walking positions from the highest depth
downwards, which depth value is reached when the cumulative number of positions
first meets or exceeds k. Neither materialises a per-position array.
"""

from typing import Optional

import numpy as np

from src.bamcov.core.models import PercentileMethod


def _prepare(lengths, values, k: int):
    lengths = np.asarray(lengths, dtype=np.int64)
    values = np.asarray(values, dtype=np.int64)
    if lengths.size == 0:
        raise ValueError("Cannot select a depth from an empty run stream")
    if lengths.shape != values.shape:
        raise ValueError("Run lengths and values must have the same shape")
    # clamp k into [0, total] so the walk always ends on a run
    k = min(max(int(k), 0), int(lengths.sum()))
    return lengths, values, k


def select_by_sort(lengths, values, k: int) -> int:
    """
    Order runs by depth descending and return the depth of the run where the
    cumulative length first reaches k. O(n log n).

    :param lengths: Run lengths.
    :param values: Run depth values.
    :param k: Target cumulative number of positions.
    :return: The selected depth value.
    """
    lengths, values, k = _prepare(lengths, values, k)
    if lengths.size == 1:
        return int(values[0])

    order = np.argsort(-values, kind='stable')
    cumulative = np.cumsum(lengths[order])
    idx = int(np.searchsorted(cumulative, k, side='left'))
    idx = min(idx, order.size - 1)

    return int(values[order[idx]])


def select_by_quickselect(lengths, values, k: int, rng: Optional[np.random.Generator] = None) -> int:
    """
    Weighted quickselect: partition runs around a random pivot depth into greater,
    equal and less, and keep only the side holding the k-th position from the top.
    Expected O(n).

    :param lengths: Run lengths.
    :param values: Run depth values.
    :param k: Target cumulative number of positions.
    :param rng: Random generator for pivot choice.
    :return: The selected depth value.
    """
    lengths, values, k = _prepare(lengths, values, k)
    rng = rng if rng is not None else np.random.default_rng()

    while True:
        if values.size == 1:
            return int(values[0])

        pivot = values[rng.integers(values.size)]
        greater = values > pivot
        equal = values == pivot

        greater_sum = int(lengths[greater].sum())
        equal_sum = int(lengths[equal].sum())

        if k <= greater_sum and greater_sum > 0:
            lengths, values = lengths[greater], values[greater]
        elif k <= greater_sum + equal_sum:
            return int(pivot)
        else:
            less = values < pivot
            k -= greater_sum + equal_sum
            lengths, values = lengths[less], values[less]


def select_depth(lengths, values, k: int, method: PercentileMethod = PercentileMethod.SELECT) -> int:
    if method == PercentileMethod.SORT:
        return select_by_sort(lengths, values, k)
    return select_by_quickselect(lengths, values, k)
