import os
import socket
import logging
import importlib.util
from dataclasses import dataclass
from typing import Optional

from pyarrow import fs

from ordering import NUMERIC, ordering_policy
from reduce_task import ReduceError, do_reduce, get_filesystem, resolve_path

LOG = logging.getLogger("worker")

WORKER_ID = socket.gethostname()
WORK_DIR = os.environ.get("MR_WORK_DIR", ".")
LOG_LEVEL = os.environ.get("MR_LOG_LEVEL", "INFO")
LOG_FORMAT = "[%(asctime)s] [%(levelname)s] [%(name)s] %(message)s"


def configure_logging(level: Optional[str] = None):
    """Configure process-wide logging. Call once, from the entry point."""
    logging.basicConfig(
        level=(level or LOG_LEVEL).upper(),
        format=LOG_FORMAT,
        datefmt='%Y-%m-%d %H:%M:%S'
    )


def load_user_function(job_path, function_name, filesystem: Optional[fs.FileSystem] = None):
    filesystem = get_filesystem(filesystem)
    with filesystem.open_input_stream(resolve_path(filesystem, job_path), compression=None) as f:
        code = f.readall().decode("utf-8")
    spec = importlib.util.spec_from_loader("user_job", loader=None)
    module = importlib.util.module_from_spec(spec)
    exec(code, module.__dict__)
    fn = getattr(module, function_name, None)
    if fn is None:
        raise AttributeError(f"{function_name} not found in {job_path}")
    return fn


@dataclass(frozen=True)
class ReduceRequest:
    job_name: str
    partition_id: int
    output_path: str
    num_maps: int
    job_path: str
    function_name: str = "reduce_function"
    work_dir: str = WORK_DIR
    ordering: str = NUMERIC.name


@dataclass(frozen=True)
class Ack:
    ok: bool
    message: str


class WorkerTaskRunner:
    """Runs reduce tasks handed over by an orchestrator and acknowledges them."""

    def __init__(self, filesystem: Optional[fs.FileSystem] = None):
        self.filesystem = get_filesystem(filesystem)

    def run_reduce(self, request: ReduceRequest) -> Ack:
        LOG.info(f"[reduce] worker={WORKER_ID} job={request.job_name} partition={request.partition_id}")
        try:
            reduce_fn = load_user_function(request.job_path, request.function_name, self.filesystem)
            result = do_reduce(
                request.job_name,
                request.partition_id,
                request.output_path,
                request.num_maps,
                reduce_fn,
                work_dir=request.work_dir,
                ordering=ordering_policy(request.ordering),
                filesystem=self.filesystem,
            )
        except ReduceError as e:
            LOG.error(f"[reduce] partition {request.partition_id} failed: {e}")
            return Ack(ok=False, message=str(e))
        except Exception as e:
            LOG.error(f"[reduce] partition {request.partition_id} failed: {e}", exc_info=True)
            return Ack(ok=False, message=f"{type(e).__name__}: {e}")

        if not result.complete:
            failed = len(result.write_report.failures)
            return Ack(ok=False, message=f"incomplete output {result.output_path}: "
                                         f"{failed} of {result.records_out} records not written")
        return Ack(ok=True, message=f"reduce done ({result.records_out} keys -> {result.output_path})")
