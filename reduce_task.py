"""
Reduce task: merge the intermediate files of one partition, order them by
key, call the user's reduce function once per key and write the results.

Everything for the partition is held in memory. A task touches no state
outside its own arguments, so independent partitions can run side by side.
"""

import contextlib
import os
import logging
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Tuple

from pyarrow import fs

from ordering import NUMERIC, OrderingPolicy, SortedRecords, sort_records
from records import KeyValue, PartitionDescriptor, decode_records, encode_record

LOG = logging.getLogger("reduce_task")

ReduceFn = Callable[[str, List[str]], str]


class ReduceError(Exception):
    """Base class for errors that abort a reduce task."""


class MissingSourceError(ReduceError):
    """An intermediate file of the partition could not be opened."""

    def __init__(self, descriptor: PartitionDescriptor, source_index: int, path: str, reason: Exception):
        self.descriptor = descriptor
        self.source_index = source_index
        self.path = path
        self.reason = reason
        super().__init__(
            f"job {descriptor.job_name} partition {descriptor.partition_index}: "
            f"cannot open source {source_index} ({path}): {reason}"
        )


class OutputCreateError(ReduceError):
    """The output file could not be created."""

    def __init__(self, path: str, reason: Exception):
        self.path = path
        self.reason = reason
        super().__init__(f"cannot create output {path}: {reason}")


@dataclass
class WriteReport:
    path: str
    written: int = 0
    failures: List[Tuple[KeyValue, Exception]] = field(default_factory=list)

    @property
    def complete(self) -> bool:
        return not self.failures


@dataclass
class ReduceResult:
    output_path: str
    records_in: int
    records_out: int
    write_report: WriteReport

    @property
    def complete(self) -> bool:
        return self.write_report.complete


def get_filesystem(filesystem: Optional[fs.FileSystem] = None) -> fs.FileSystem:
    return filesystem if filesystem is not None else fs.LocalFileSystem()


def resolve_path(filesystem: fs.FileSystem, path: str) -> str:
    # LocalFileSystem wants absolute paths
    if isinstance(filesystem, fs.LocalFileSystem):
        return os.path.abspath(path)
    return path


def ensure_parent_dir(filesystem: fs.FileSystem, path: str) -> None:
    parent = path.rsplit("/", 1)[0] if "/" in path else ""
    if parent:
        filesystem.create_dir(parent, recursive=True)


def merge_sources(
    descriptor: PartitionDescriptor,
    work_dir: Optional[str] = None,
    filesystem: Optional[fs.FileSystem] = None,
) -> List[KeyValue]:
    """Read every intermediate file of the partition into one list.

    All sources are opened before any is decoded; if one cannot be opened
    MissingSourceError is raised and nothing is merged. A source stops
    contributing at its first undecodable record.
    """
    filesystem = get_filesystem(filesystem)
    records: List[KeyValue] = []
    with contextlib.ExitStack() as stack:
        streams = []
        for m, path in enumerate(descriptor.source_paths(work_dir)):
            try:
                stream = filesystem.open_input_stream(resolve_path(filesystem, path), compression=None)
            except OSError as e:
                raise MissingSourceError(descriptor, m, path, e) from e
            streams.append((path, stack.enter_context(stream)))

        for path, stream in streams:
            try:
                data = stream.readall()
            except OSError as e:
                LOG.warning("[reduce] read of %s failed, treating as end of stream: %s", path, e)
                continue
            before = len(records)
            records.extend(decode_records(data, source=path))
            LOG.debug("[reduce] %s: %d records", path, len(records) - before)
    return records


def group_and_reduce(sorted_records: SortedRecords, reduce_fn: ReduceFn) -> List[KeyValue]:
    """Call reduce_fn once per run of adjacent records sharing a key.

    Equal keys that are not adjacent under the sort policy end up in
    separate groups.
    """
    if not isinstance(sorted_records, SortedRecords):
        raise TypeError(f"expected SortedRecords, got {type(sorted_records).__name__}")

    results: List[KeyValue] = []
    current_key = None
    values: List[str] = []
    for kv in sorted_records:
        if kv.key != current_key:
            if values:
                results.append(KeyValue(current_key, reduce_fn(current_key, values)))
            current_key = kv.key
            values = [kv.value]
        else:
            values.append(kv.value)
    if values:
        results.append(KeyValue(current_key, reduce_fn(current_key, values)))
    return results


def write_results(
    results: List[KeyValue],
    output_path: str,
    filesystem: Optional[fs.FileSystem] = None,
) -> WriteReport:
    """Create (or truncate) output_path and write the results in order.

    Records that fail to serialize or write are logged and collected in the
    returned report; the remaining records are still written.
    """
    filesystem = get_filesystem(filesystem)
    path = resolve_path(filesystem, output_path)
    try:
        ensure_parent_dir(filesystem, path)
        out = filesystem.open_output_stream(path, compression=None)
    except OSError as e:
        raise OutputCreateError(output_path, e) from e

    report = WriteReport(output_path)
    with out:
        for kv in results:
            try:
                out.write(encode_record(kv))
            except (TypeError, ValueError, OSError) as e:
                LOG.error("[reduce] failed to write key %r to %s: %s", kv.key, output_path, e)
                report.failures.append((kv, e))
                continue
            report.written += 1
    return report


def do_reduce(
    job_name: str,
    reduce_task: int,
    out_file: str,
    n_map: int,
    reduce_fn: ReduceFn,
    work_dir: Optional[str] = None,
    ordering: OrderingPolicy = NUMERIC,
    filesystem: Optional[fs.FileSystem] = None,
) -> ReduceResult:
    """Run one reduce task.

    Args:
        job_name: name of the whole MapReduce job
        reduce_task: partition index of this task
        out_file: where to write the results
        n_map: number of map tasks that produced intermediate files
        reduce_fn: reduce_fn(key, values) -> str, called once per key
        work_dir: directory holding the intermediate files (default: cwd)
        ordering: key ordering policy used for grouping
        filesystem: pyarrow filesystem, local by default

    Raises MissingSourceError or OutputCreateError; exceptions raised by
    reduce_fn propagate unchanged.
    """
    filesystem = get_filesystem(filesystem)
    descriptor = PartitionDescriptor(job_name, n_map, reduce_task)
    LOG.info("[reduce] job=%s partition=%d sources=%d ordering=%s",
             job_name, reduce_task, n_map, ordering.name)

    records = merge_sources(descriptor, work_dir, filesystem)
    sorted_records = sort_records(records, ordering)
    results = group_and_reduce(sorted_records, reduce_fn)
    report = write_results(results, out_file, filesystem)

    if report.failures:
        LOG.warning("[reduce] %d of %d results not written to %s",
                    len(report.failures), len(results), out_file)
    LOG.info(f"[reduce] complete (in={len(records)}, out={report.written}) -> {out_file}")
    return ReduceResult(out_file, len(records), len(results), report)
