"""Run grouping and binary search over ordered sequences."""

from typing import Callable, Sequence


def for_each_unique_range(seq: Sequence, equal: Callable, func: Callable) -> list:
    """Call ``func(lo, hi, seq)`` for each run of equivalent elements.

    A run starts at ``seq[lo]`` and keeps growing while ``equal(seq[lo],
    seq[hi])`` holds, so every element is compared with the first element
    of its run only.  Returns the results in order.
    """
    res = []
    lo = 0
    while lo != len(seq):
        hi = lo + 1
        while hi != len(seq) and equal(seq[lo], seq[hi]):
            hi += 1
        res.append(func(lo, hi, seq))
        lo = hi
    return res


def search(seq: Sequence, pred: Callable) -> int:
    """Binary search for the first element satisfying ``pred``.

    Finds ``0 <= i <= len(seq)`` such that ``not pred(seq[i - 1])`` and
    ``pred(seq[i])``, assuming ``pred`` is false before the start and true
    past the end of ``seq``.
    """
    le, ri = -1, len(seq)
    while le + 1 != ri:
        mi = le + ((ri - le) >> 1)
        if pred(seq[mi]):
            ri = mi
        else:
            le = mi
    return ri
