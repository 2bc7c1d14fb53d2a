"""File naming conventions shared by map and reduce tasks."""


def intermediate_file_name(job_name: str, source_index: int, partition_index: int) -> str:
    """Name of the file map task <source_index> produces for reduce task <partition_index>."""
    return f"mrtmp.{job_name}-{source_index}-{partition_index}"


def result_file_name(job_name: str, partition_index: int) -> str:
    """Name of the output file of reduce task <partition_index>."""
    return f"mrtmp.{job_name}-res-{partition_index}"
