"""Tests for the worker adapter, the file client and the command line."""

import contextlib
import io
import os
import tempfile
import unittest
from pathlib import Path

import map_reduce
from client import Client, ClientError
from records import KeyValue
from worker import ReduceRequest, WorkerTaskRunner, load_user_function

ROOT = Path(__file__).resolve().parents[1]
JOBS = ROOT / "client_folder" / "jobs"


class WorkerTestCase(unittest.TestCase):

    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.work_dir = self._tmp.name
        self.client = Client(work_dir=self.work_dir)

    def tearDown(self):
        self._tmp.cleanup()

    def write_job(self, name: str, code: str) -> str:
        path = os.path.join(self.work_dir, name)
        self.client.write_file(path, code.encode("utf-8"))
        return path


class TestLoadUserFunction(WorkerTestCase):

    def test_loads_named_function(self):
        fn = load_user_function(str(JOBS / "concat.py"), "reduce_function")
        self.assertEqual(fn("k", ["a", "b"]), "a,b")
        fn = load_user_function(str(JOBS / "concat.py"), "count_function")
        self.assertEqual(fn("k", ["a", "b"]), "2")

    def test_sample_jobs(self):
        word_count = load_user_function(str(JOBS / "word_count.py"), "reduce_function")
        self.assertEqual(word_count("hello", ["1", "2", "1"]), "4")
        inverted_index = load_user_function(str(JOBS / "inverted_index.py"), "reduce_function")
        self.assertEqual(inverted_index("hello", ["doc2", "doc1", "doc2"]), "doc1,doc2")

    def test_missing_function(self):
        with self.assertRaises(AttributeError):
            load_user_function(str(JOBS / "concat.py"), "no_such_function")

    def test_missing_job_file(self):
        with self.assertRaises(OSError):
            load_user_function(os.path.join(self.work_dir, "missing.py"), "reduce_function")


class TestWorkerTaskRunner(WorkerTestCase):

    def request(self, **kwargs):
        fields = dict(
            job_name="test",
            partition_id=0,
            output_path=self.client.result_path("test", 0),
            num_maps=2,
            job_path=str(JOBS / "concat.py"),
            work_dir=self.work_dir,
        )
        fields.update(kwargs)
        return ReduceRequest(**fields)

    def seed(self):
        self.client.write_intermediate("test", 0, 0, [KeyValue("2", "x"), KeyValue("1", "a")])
        self.client.write_intermediate("test", 1, 0, [KeyValue("1", "b")])

    def test_successful_reduce(self):
        self.seed()
        ack = WorkerTaskRunner().run_reduce(self.request())
        self.assertTrue(ack.ok, ack.message)
        records = self.client.read_result("test", 0)
        self.assertEqual([kv.key for kv in records], ["1", "2"])
        self.assertEqual(sorted(records[0].value.split(",")), ["a", "b"])

    def test_missing_source_nacked(self):
        self.client.write_intermediate("test", 0, 0, [KeyValue("1", "a")])
        ack = WorkerTaskRunner().run_reduce(self.request())
        self.assertFalse(ack.ok)
        self.assertIn("cannot open source 1", ack.message)
        self.assertFalse(os.path.exists(self.client.result_path("test", 0)))

    def test_unknown_ordering_nacked(self):
        self.seed()
        ack = WorkerTaskRunner().run_reduce(self.request(ordering="random"))
        self.assertFalse(ack.ok)
        self.assertIn("unknown ordering policy", ack.message)

    def test_failing_reduce_function_nacked(self):
        self.seed()
        job = self.write_job("broken.py", "def reduce_function(key, values):\n    raise KeyError(key)\n")
        ack = WorkerTaskRunner().run_reduce(self.request(job_path=job))
        self.assertFalse(ack.ok)
        self.assertIn("KeyError", ack.message)

    def test_incomplete_output_nacked(self):
        self.seed()
        job = self.write_job("ints.py", "def reduce_function(key, values):\n    return len(values)\n")
        ack = WorkerTaskRunner().run_reduce(self.request(job_path=job))
        self.assertFalse(ack.ok)
        self.assertIn("2 of 2 records not written", ack.message)


class TestClient(WorkerTestCase):

    def test_write_and_read_file(self):
        path = os.path.join(self.work_dir, "sub", "hello.txt")
        self.client.write_file(path, b"Hello world!")
        self.assertEqual(self.client.read_file(path), b"Hello world!")

    def test_read_missing_file(self):
        with self.assertRaises(ClientError):
            self.client.read_file(os.path.join(self.work_dir, "missing"))

    def test_write_intermediate_uses_naming(self):
        path = self.client.write_intermediate("wc", 3, 1, [KeyValue("k", "v")])
        self.assertEqual(os.path.basename(path), "mrtmp.wc-3-1")
        self.assertEqual(self.client.read_records(path), [KeyValue("k", "v")])

    def test_reduce(self):
        self.client.write_intermediate("wc", 0, 0, [KeyValue("b", "1"), KeyValue("a", "1")])
        self.client.write_intermediate("wc", 1, 0, [KeyValue("b", "3")])
        ack = self.client.reduce("wc", 0, 2, str(JOBS / "word_count.py"), ordering="lexicographic")
        self.assertTrue(ack.ok, ack.message)
        self.assertEqual(self.client.read_result("wc", 0), [KeyValue("a", "1"), KeyValue("b", "4")])


class TestCommandLine(WorkerTestCase):

    def run_main(self, *argv):
        out, err = io.StringIO(), io.StringIO()
        with contextlib.redirect_stdout(out), contextlib.redirect_stderr(err):
            code = map_reduce.main(list(argv))
        return code, out.getvalue(), err.getvalue()

    def test_reduce_and_show(self):
        self.client.write_intermediate("cli", 0, 1, [KeyValue("10", "a"), KeyValue("9", "b")])
        self.client.write_intermediate("cli", 1, 1, [KeyValue("10", "c")])

        code, out, _ = self.run_main(
            "--log-level", "WARNING", "reduce", "cli", "1", str(JOBS / "concat.py"),
            "--num-maps", "2", "--reduce", "count_function", "--work-dir", self.work_dir,
        )
        self.assertEqual(code, 0)
        self.assertIn("reduce done", out)

        result = self.client.result_path("cli", 1)
        code, out, _ = self.run_main("show", result)
        self.assertEqual(code, 0)
        self.assertEqual(out.splitlines(), ["9\t1", "10\t2"])

    def test_reduce_failure_exit_code(self):
        code, _, err = self.run_main(
            "reduce", "cli", "0", str(JOBS / "concat.py"), "--num-maps", "1", "--work-dir", self.work_dir,
        )
        self.assertEqual(code, 1)
        self.assertIn("reduce failed", err)

    def test_show_missing_file(self):
        code, _, err = self.run_main("show", os.path.join(self.work_dir, "missing"))
        self.assertEqual(code, 1)
        self.assertIn("Failed to read", err)

    def test_help(self):
        code, out, _ = self.run_main("help")
        self.assertEqual(code, 0)
        self.assertIn("Commands:", out)


if __name__ == '__main__':
    unittest.main()
