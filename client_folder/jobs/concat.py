"""Concatenation job: joins every value of a key with commas, in the order received."""

from typing import List


def reduce_function(key: str, values: List[str]) -> str:
    return ",".join(values)


def count_function(key: str, values: List[str]) -> str:
    return str(len(values))
