"""Chunk splitting, previews and structural edits."""

import random
import unittest
from pathlib import Path

import pytest

from ai_refactor.chunks import ChunkDocument, join_chunks, shorten, split_chunks
from ai_refactor.errors import MalformedCommand


class TestSplit(unittest.TestCase):
    def test_runs_of_blank_lines_are_one_boundary(self):
        self.assertEqual(split_chunks("a\nb\n\n\nc\n   \nd"), ["a\nb", "c", "d"])

    def test_indentation_is_kept(self):
        text = "def f():\n    return 1\n\n    x = 2\n"
        self.assertEqual(split_chunks(text), ["def f():\n    return 1", "    x = 2"])

    def test_crlf_input(self):
        self.assertEqual(split_chunks("a\r\n\r\nb\r\n"), ["a", "b"])

    def test_empty(self):
        self.assertEqual(split_chunks(""), [])
        self.assertEqual(split_chunks("\n \n\t\n"), [])

    def test_round_trip(self):
        samples = [
            "a",
            "a\nb\n\nc",
            "\n\nfoo\n\nbar\n\n",
            "  indented\n\n\tx\ny\n",
            "one\n\ntwo\n\nthree\n",
        ]
        for text in samples:
            expected = text.strip("\n")
            self.assertEqual(join_chunks(split_chunks(text)), expected.rstrip("\n"), repr(text))


class TestShorten(unittest.TestCase):
    def test_comment_then_code(self):
        self.assertEqual(
            shorten("// doubles x\nint f(int x) {\n  return 2 * x;\n}"),
            "// doubles x...\nint f(int x) {...",
        )

    def test_code_only(self):
        self.assertEqual(shorten("x = 1\ny = 2"), "x = 1...")

    def test_comment_only(self):
        self.assertEqual(shorten("# a\n# b"), "# a...")

    def test_haskell_comment(self):
        self.assertEqual(shorten("foo :: Int\n-- the answer\nfoo = 42"), "-- the answer...\nfoo :: Int...")


def _doc() -> ChunkDocument:
    doc = ChunkDocument()
    doc.load_file("a.py", "a0\n\na1\n\na2\n")
    doc.load_file("b.py", "b0\n\nb1")
    return doc


def _texts(doc: ChunkDocument):
    return [c.text for c in doc.chunks]


def _assert_dense(doc: ChunkDocument):
    assert [c.id for c in doc.chunks] == list(range(len(doc)))


def test_load_assigns_dense_ids_across_files():
    doc = _doc()
    _assert_dense(doc)
    assert [(c.id, c.path) for c in doc.chunks] == [
        (0, "a.py"), (1, "a.py"), (2, "a.py"), (3, "b.py"), (4, "b.py"),
    ]
    assert not any(c.visible for c in doc.chunks)


def test_edit_replaces_with_any_number_of_chunks():
    doc = _doc()
    ids = doc.edit(1, ["x\n\ny", "z"])
    assert ids == [1, 2, 3]
    assert _texts(doc) == ["a0", "x", "y", "z", "a2", "b0", "b1"]
    assert [c.visible for c in doc.chunks][1:4] == [True, True, True]
    _assert_dense(doc)


def test_edit_with_nothing_deletes():
    doc = _doc()
    assert doc.edit(0, []) == []
    assert _texts(doc) == ["a1", "a2", "b0", "b1"]
    _assert_dense(doc)


def test_insert_and_append():
    doc = _doc()
    assert doc.insert(0, ["new"]) == [0]
    # The chunk that was 0 is now 1.
    assert doc[1].text == "a0"
    assert doc.append(3, ["after"]) == [4]
    assert _texts(doc) == ["new", "a0", "a1", "a2", "after", "b0", "b1"]
    assert doc[4].path == "a.py"
    _assert_dense(doc)


def test_splice_replaces_inclusive_range():
    doc = _doc()
    assert doc.splice(0, 2, ["only"]) == [0]
    assert _texts(doc) == ["only", "b0", "b1"]
    assert [c.path for c in doc.chunks] == ["a.py", "b.py", "b.py"]


def test_splice_across_files_is_rejected():
    doc = _doc()
    with pytest.raises(MalformedCommand):
        doc.splice(2, 3, ["x"])
    assert _texts(doc) == ["a0", "a1", "a2", "b0", "b1"]


def test_out_of_range_is_rejected():
    doc = _doc()
    with pytest.raises(MalformedCommand):
        doc.edit(5, ["x"])
    with pytest.raises(MalformedCommand):
        doc.set_visible([9], True)


def test_other_files_keep_order():
    doc = _doc()
    doc.edit(4, ["B1", "B2"])
    assert [c.text for c in doc.chunks_of("a.py")] == ["a0", "a1", "a2"]
    assert doc.dirty == {"b.py"}


def test_ids_stay_dense_under_random_mutations():
    rng = random.Random(7)
    doc = _doc()
    for _ in range(200):
        if len(doc) == 0:
            doc.load_file("c.py", "c0\n\nc1")
        i = rng.randrange(len(doc))
        op = rng.choice(["edit", "insert", "append", "splice"])
        texts = [f"t{rng.randrange(100)}" for _ in range(rng.randrange(3))]
        if op == "edit":
            doc.edit(i, texts)
        elif op == "insert":
            doc.insert(i, texts)
        elif op == "append":
            doc.append(i, texts)
        else:
            path = doc[i].path
            j = i
            while j + 1 < len(doc) and doc[j + 1].path == path and rng.random() < 0.5:
                j += 1
            doc.splice(i, j, texts)
        _assert_dense(doc)


def test_visibility_by_id_and_file():
    doc = _doc()
    doc.set_visible([0, 2], True)
    assert [c.visible for c in doc.chunks] == [True, False, True, False, False]
    assert doc.set_file_visible("b.py", True)
    assert not doc.set_file_visible("missing.py", True)
    assert [c.visible for c in doc.chunks][3:] == [True, True]


def test_reload_replaces_file_in_place():
    doc = _doc()
    ids = doc.load_file("a.py", "n0\n\nn1", visible=True)
    assert ids == [0, 1]
    assert _texts(doc) == ["n0", "n1", "b0", "b1"]


def test_save_writes_only_dirty_files(tmp_path: Path):
    (tmp_path / "a.py").write_text("x = 1\n\ny = 2\n")
    (tmp_path / "b.py").write_text("keep   \n\n\n\nthis")
    doc = ChunkDocument()
    for name in ("a.py", "b.py"):
        doc.load_file(name, (tmp_path / name).read_text())
    doc.edit(1, ["y = 3"])
    assert doc.save(tmp_path) == ["a.py"]
    assert (tmp_path / "a.py").read_text() == "x = 1\n\ny = 3\n"
    assert (tmp_path / "b.py").read_text() == "keep   \n\n\n\nthis"
    assert doc.dirty == set()


def test_save_keeps_crlf(tmp_path: Path):
    (tmp_path / "w.c").write_bytes(b"a\r\n\r\nb")
    doc = ChunkDocument()
    doc.load_file("w.c", (tmp_path / "w.c").read_bytes().decode())
    doc.edit(1, ["c"])
    doc.save(tmp_path)
    assert (tmp_path / "w.c").read_bytes() == b"a\r\n\r\nc"
