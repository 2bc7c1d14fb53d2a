"""
Inverted Index Reduce Job

Interface:
    reduce_function(word, [doc_ids]) -> "doc_a,doc_b,..."

Builds an inverted index: word -> documents where the word appears.
"""

from typing import List


def reduce_function(key: str, values: List[str]) -> str:
    """
    Aggregate the document IDs for a word.

    Args:
        key: The word.
        values: Document IDs, may contain duplicates.

    Returns:
        Comma separated, sorted, unique document IDs.
    """
    unique_docs = sorted(set(values))
    return ",".join(unique_docs)
