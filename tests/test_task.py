import unittest

from ai_refactor.errors import TaskNotFound
from ai_refactor.task import split_task


class TestSplitTask(unittest.TestCase):
    def test_marker_splits_body_and_task(self):
        body, task = split_task("code\n\n//! add a function\nthat doubles x")
        self.assertEqual(body, "code")
        self.assertEqual(task, "add a function\nthat doubles x")

    def test_earliest_marker_wins(self):
        body, task = split_task("a\n--! first\n//! second")
        self.assertEqual(body, "a")
        self.assertEqual(task, "first\n//! second")

    def test_hash_marker(self):
        body, task = split_task("x = 1\n##! make it 2\n")
        self.assertEqual((body, task), ("x = 1", "make it 2"))

    def test_trailing_comment_block(self):
        body, task = split_task("x = 1\n\n# do this\n# and that\n")
        self.assertEqual(body, "x = 1")
        self.assertEqual(task, "do this\nand that")

    def test_import_lines_are_not_task_lines(self):
        body, task = split_task("#./dep.py#\nx = 1\n# task")
        self.assertEqual(body, "#./dep.py#\nx = 1")
        self.assertEqual(task, "task")

    def test_file_ending_in_import_has_no_task(self):
        with self.assertRaises(TaskNotFound):
            split_task("code\n//./b.js//\n")

    def test_empty_marker_task(self):
        with self.assertRaises(TaskNotFound):
            split_task("code\n//!   \n")

    def test_empty_file(self):
        with self.assertRaises(TaskNotFound):
            split_task("\n\n")

    def test_crlf_body_is_preserved(self):
        body, task = split_task("a\r\nb\r\n\r\n//! task")
        self.assertEqual(body, "a\r\nb")
        self.assertEqual(task, "task")
