import os
import logging
from typing import Iterable, List, Optional

from pyarrow import fs

from naming import intermediate_file_name, result_file_name
from records import KeyValue, decode_records, encode_records
from reduce_task import ensure_parent_dir, get_filesystem, resolve_path
from worker import WORK_DIR, Ack, ReduceRequest, WorkerTaskRunner

LOG = logging.getLogger("client")


class ClientError(Exception):
    pass


class Client:
    """This class abstracts record file operations and reduce task submission"""
    def __init__(self, filesystem: Optional[fs.FileSystem] = None, work_dir: str = WORK_DIR):
        self.filesystem = get_filesystem(filesystem)
        self.work_dir = work_dir
        self.runner = WorkerTaskRunner(self.filesystem)

    def _path(self, name: str) -> str:
        return os.path.join(self.work_dir, name) if self.work_dir else name

    def read_file(self, file_path: str) -> bytes:
        """Read a whole file"""
        try:
            with self.filesystem.open_input_stream(resolve_path(self.filesystem, file_path), compression=None) as f:
                return f.readall()
        except OSError as e:
            raise ClientError(f"Failed to read {file_path}: {e}") from e

    def write_file(self, file_path: str, content: bytes):
        """Create or overwrite a file"""
        path = resolve_path(self.filesystem, file_path)
        try:
            ensure_parent_dir(self.filesystem, path)
            with self.filesystem.open_output_stream(path, compression=None) as f:
                f.write(content)
        except OSError as e:
            raise ClientError(f"Failed to write {file_path}: {e}") from e

    def read_records(self, file_path: str) -> List[KeyValue]:
        return list(decode_records(self.read_file(file_path), source=file_path))

    def write_records(self, file_path: str, records: Iterable[KeyValue]):
        self.write_file(file_path, encode_records(records))

    def write_intermediate(self, job_name: str, source_index: int, partition_index: int,
                           records: Iterable[KeyValue]) -> str:
        """Write the intermediate file map task <source_index> would produce for a partition"""
        path = self._path(intermediate_file_name(job_name, source_index, partition_index))
        self.write_records(path, records)
        LOG.debug("wrote intermediate file %s", path)
        return path

    def result_path(self, job_name: str, partition_index: int) -> str:
        return self._path(result_file_name(job_name, partition_index))

    def read_result(self, job_name: str, partition_index: int) -> List[KeyValue]:
        return self.read_records(self.result_path(job_name, partition_index))

    def reduce(self, job_name: str, partition_index: int, num_maps: int, job_path: str,
               function_name: str = "reduce_function", output_path: Optional[str] = None,
               ordering: str = "numeric") -> Ack:
        """Run one reduce task locally and return its acknowledgement"""
        request = ReduceRequest(
            job_name=job_name,
            partition_id=partition_index,
            output_path=output_path or self.result_path(job_name, partition_index),
            num_maps=num_maps,
            job_path=job_path,
            function_name=function_name,
            work_dir=self.work_dir,
            ordering=ordering,
        )
        return self.runner.run_reduce(request)
