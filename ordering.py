"""
Key ordering policies for the reduce task.

Grouping in the reduce task relies on equal keys being adjacent after
sorting, so the sorter hands the grouper a SortedRecords value tagged with
the policy that produced it rather than a bare list.
"""

import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Dict, List

from records import KeyValue

_INT_RE = re.compile(r"[+-]?[0-9]+\Z")
_INT64_MIN = -(2 ** 63)
_INT64_MAX = 2 ** 63 - 1


def parse_key_as_int(key: str) -> int:
    """Base-10 integer value of a key, 0 when the key is not an integer.

    Only an optional sign followed by ASCII digits is accepted. Values outside
    the signed 64-bit range saturate at its bounds.
    """
    if not _INT_RE.match(key):
        return 0
    return max(_INT64_MIN, min(_INT64_MAX, int(key)))


class OrderingPolicy(ABC):
    """Total order over records, identified by a name tag."""
    name = "abstract"

    @abstractmethod
    def sort_key(self, kv: KeyValue):
        """Value records are ordered by."""

    def __repr__(self):
        return f"{type(self).__name__}()"


class NumericKeyOrder(OrderingPolicy):
    """Orders keys by their integer value. All non-integer keys compare equal to 0."""
    name = "numeric"

    def sort_key(self, kv: KeyValue) -> int:
        return parse_key_as_int(kv.key)


class LexicographicKeyOrder(OrderingPolicy):
    name = "lexicographic"

    def sort_key(self, kv: KeyValue) -> str:
        return kv.key


NUMERIC = NumericKeyOrder()
LEXICOGRAPHIC = LexicographicKeyOrder()

_POLICIES: Dict[str, OrderingPolicy] = {p.name: p for p in (NUMERIC, LEXICOGRAPHIC)}


def ordering_policy(name: str) -> OrderingPolicy:
    try:
        return _POLICIES[name]
    except KeyError:
        raise ValueError(f"unknown ordering policy {name!r}, expected one of {sorted(_POLICIES)}") from None


def available_policies() -> List[str]:
    return sorted(_POLICIES)


@dataclass
class SortedRecords:
    """Records sorted by `policy`. Produced only by sort_records."""
    records: List[KeyValue]
    policy: OrderingPolicy

    def __len__(self):
        return len(self.records)

    def __iter__(self):
        return iter(self.records)


def sort_records(records: List[KeyValue], policy: OrderingPolicy = NUMERIC) -> SortedRecords:
    """Sort in place and tag the result with the policy used.

    The relative order of records whose sort keys tie is unspecified.
    """
    records.sort(key=policy.sort_key)
    return SortedRecords(records, policy)
