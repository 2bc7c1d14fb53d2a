"""
Word Count Reduce Job

Intermediate records are (word, count) pairs emitted by the map tasks,
with counts as decimal strings. Words are not integers, so run this job
with the lexicographic ordering:

    python3 map_reduce.py reduce wc 0 client_folder/jobs/word_count.py \
        --num-maps 3 --ordering lexicographic
"""

from typing import List


def reduce_function(key: str, values: List[str]) -> str:
    """
    Reduce phase: sum up the counts for each word.

    Args:
        key: The word.
        values: Counts for this word, e.g. ["1", "1", "3"].

    Returns:
        The total count as a string.
    """
    total_count = sum(int(v) for v in values)
    return str(total_count)
