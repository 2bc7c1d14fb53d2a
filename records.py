"""
Record types exchanged between the stages of a MapReduce job, and the
record stream format used for intermediate and result files.

The stream is a sequence of JSON objects written back to back:

    {"Key":"1","Value":"a"}
    {"Key":"2","Value":"x"}

There is no record count or length prefix. Readers stop at the first value
that cannot be decoded, so a truncated trailing record is indistinguishable
from a clean end of stream: decoding is best-effort.
"""

import json
import logging
import os
import re
from dataclasses import dataclass
from typing import Iterable, Iterator, List, Optional

from naming import intermediate_file_name, result_file_name

LOG = logging.getLogger("records")


class _Members(list):
    """(name, value) pairs of a decoded JSON object, in document order."""


_DECODER = json.JSONDecoder(object_pairs_hook=_Members)
_WHITESPACE = re.compile(r"[ \t\n\r]*")


@dataclass(frozen=True)
class KeyValue:
    key: str
    value: str


@dataclass(frozen=True)
class PartitionDescriptor:
    """Identifies the intermediate files one reduce task has to read."""
    job_name: str
    source_count: int
    partition_index: int

    def source_paths(self, work_dir: Optional[str] = None) -> List[str]:
        names = [
            intermediate_file_name(self.job_name, m, self.partition_index)
            for m in range(self.source_count)
        ]
        if work_dir:
            return [os.path.join(work_dir, name) for name in names]
        return names

    def result_path(self, work_dir: Optional[str] = None) -> str:
        name = result_file_name(self.job_name, self.partition_index)
        return os.path.join(work_dir, name) if work_dir else name


def encode_record(kv: KeyValue) -> bytes:
    """Serialize one record, newline terminated.

    Raises TypeError when key or value is not a string, and ValueError
    (UnicodeEncodeError) when either holds text that is not valid UTF-8.
    """
    if not isinstance(kv.key, str) or not isinstance(kv.value, str):
        raise TypeError(
            f"record fields must be str, got key={type(kv.key).__name__} "
            f"value={type(kv.value).__name__}"
        )
    line = json.dumps({"Key": kv.key, "Value": kv.value}, ensure_ascii=False, separators=(",", ":"))
    return (line + "\n").encode("utf-8")


def encode_records(records: Iterable[KeyValue]) -> bytes:
    return b"".join(encode_record(kv) for kv in records)


def _to_record(obj) -> Optional[KeyValue]:
    # A bare null decodes to an empty record. Members match field names
    # case-insensitively and the last match wins; null members are skipped.
    if obj is None:
        return KeyValue("", "")
    if not isinstance(obj, _Members):
        return None
    fields = {"key": "", "value": ""}
    for name, v in obj:
        field = name.lower()
        if field not in fields or v is None:
            continue
        if not isinstance(v, str):
            return None
        fields[field] = v
    return KeyValue(fields["key"], fields["value"])


def decode_records(data: bytes, source: str = "<stream>") -> Iterator[KeyValue]:
    """Yield records from a record stream until the first decode failure."""
    text = data.decode("utf-8", errors="replace")
    pos = _WHITESPACE.match(text, 0).end()
    while pos < len(text):
        try:
            obj, end = _DECODER.raw_decode(text, pos)
        except (ValueError, RecursionError):
            LOG.debug("%s: stopped decoding at offset %d, %d trailing chars discarded",
                      source, pos, len(text) - pos)
            return
        kv = _to_record(obj)
        if kv is None:
            LOG.debug("%s: stopped decoding at offset %d, value is not a record", source, pos)
            return
        yield kv
        pos = _WHITESPACE.match(text, end).end()
