"""Agent reply parsing."""

import unittest

from ai_refactor.commands import (
    ChunkEditCommand,
    DoneCommand,
    HideCommand,
    OmitCommand,
    PatchCommand,
    RemoveCommand,
    RunCommand,
    SearchReplace,
    ShowCommand,
    WriteCommand,
    parse_commands,
    parse_search_replace,
)
from ai_refactor.errors import MalformedCommand

PATCH_BODY = """
<<<<<<< SEARCH
A
=======
A B
>>>>>>> REPLACE
<<<<<<< SEARCH
A B
=======
A B C
>>>>>>> REPLACE
"""


class TestParseCommands(unittest.TestCase):
    def test_write_paired(self):
        res = parse_commands('Sure.\n<WRITE path="./a.txt">\nhello\n</WRITE>\nDone.')
        self.assertEqual(res.commands, [WriteCommand("./a.txt", "\nhello\n")])

    def test_lowercase_tag_and_bare_attribute(self):
        res = parse_commands("<write file=src/a.txt>x</write>")
        self.assertEqual(res.commands, [WriteCommand("src/a.txt", "x")])

    def test_close_tag_is_case_insensitive(self):
        res = parse_commands('<Write path="a">x</WRITE>')
        self.assertEqual(res.commands, [WriteCommand("a", "x")])

    def test_patch_blocks_in_order(self):
        res = parse_commands(f'<PATCH path="f.txt">{PATCH_BODY}</PATCH>')
        self.assertEqual(
            res.commands,
            [PatchCommand("f.txt", [SearchReplace("A", "A B"), SearchReplace("A B", "A B C")])],
        )

    def test_attribute_only_tags_self_closing_and_paired(self):
        res = parse_commands('<SHOW path="a"/>\n<HIDE path="b"></HIDE>\n<REMOVE path=c.txt/>\n<delete file="d"/>')
        self.assertEqual(
            res.commands,
            [ShowCommand("a"), HideCommand("b"), RemoveCommand("c.txt"), RemoveCommand("d")],
        )

    def test_unknown_tags_are_skipped(self):
        res = parse_commands('<FOO path="x"/><WRITE path="a">b</WRITE> List<int> xs;')
        self.assertEqual(res.commands, [WriteCommand("a", "b")])
        self.assertEqual(res.unknown, ["FOO", "int"])
        self.assertEqual(res.skipped, [])

    def test_missing_attribute_skips_only_that_command(self):
        res = parse_commands('<WRITE>x</WRITE>\n<REMOVE path="a"/>')
        self.assertEqual(res.commands, [RemoveCommand("a")])
        self.assertEqual(len(res.skipped), 1)
        self.assertEqual(res.skipped[0].tag, "WRITE")

    def test_unterminated_block(self):
        res = parse_commands('<WRITE path="a">no close tag <SHOW path="b"/>')
        self.assertEqual(res.commands, [ShowCommand("b")])
        self.assertEqual(res.skipped[0].path, "a")

    def test_unclosed_attribute_tag_does_not_swallow_later_commands(self):
        res = parse_commands(
            '<SHOW path="a">\n<WRITE path="b.txt">x</WRITE>\n<SHOW path="c"></SHOW>\n<omit path="lib">x.ts\ny.ts</omit>'
        )
        self.assertEqual(
            res.commands,
            [ShowCommand("a"), WriteCommand("b.txt", "x"), ShowCommand("c"), OmitCommand(["lib/x.ts", "lib/y.ts"])],
        )
        self.assertEqual(res.skipped, [])

    def test_patch_without_blocks_is_skipped(self):
        res = parse_commands('<PATCH path="a">just text</PATCH>')
        self.assertEqual(res.commands, [])
        self.assertEqual(res.skipped[0].path, "a")

    def test_body_is_not_reparsed(self):
        res = parse_commands('<WRITE path="a.html"><REMOVE path="x"/></WRITE>')
        self.assertEqual(res.commands, [WriteCommand("a.html", '<REMOVE path="x"/>')])

    def test_omit_forms(self):
        res = parse_commands('<omit file="./b.ts"/>\n<omit path="./lib">\nx.ts\n\ny.ts\n</omit>')
        self.assertEqual(
            res.commands,
            [OmitCommand(["./b.ts"]), OmitCommand(["./lib/x.ts", "./lib/y.ts"])],
        )

    def test_run(self):
        res = parse_commands("<RUN>\nmake test\n</RUN>")
        self.assertEqual(res.commands, [RunCommand("make test")])

    def test_plain_text_has_no_commands(self):
        res = parse_commands("I could not find anything to change. a < b and c > d.")
        self.assertEqual(res.commands, [])


class TestChunkCommands(unittest.TestCase):
    def test_edit_body_is_split_into_chunks(self):
        res = parse_commands('<EDIT id="2">\na\n\nb\n</EDIT>')
        self.assertEqual(res.commands, [ChunkEditCommand("edit", 2, 2, ["a", "b"])])

    def test_empty_edit_body(self):
        res = parse_commands('<EDIT id="0"></EDIT>')
        self.assertEqual(res.commands, [ChunkEditCommand("edit", 0, 0, [])])

    def test_splice_range(self):
        res = parse_commands('<SPLICE id="2-5">x</SPLICE><INSERT id=1>y</INSERT><APPEND id="3">z</APPEND>')
        self.assertEqual(
            res.commands,
            [
                ChunkEditCommand("splice", 2, 5, ["x"]),
                ChunkEditCommand("insert", 1, 1, ["y"]),
                ChunkEditCommand("append", 3, 3, ["z"]),
            ],
        )

    def test_range_only_for_splice(self):
        res = parse_commands('<EDIT id="2-3">x</EDIT>')
        self.assertEqual(res.commands, [])
        self.assertEqual(len(res.skipped), 1)

    def test_show_ids_and_done(self):
        res = parse_commands('<SHOW id="1 2, 4-5"/>\n<HIDE id="0"/>\n<DONE/>')
        self.assertEqual(
            res.commands,
            [ShowCommand("", [1, 2, 4, 5]), HideCommand("", [0]), DoneCommand()],
        )

    def test_show_without_target(self):
        res = parse_commands("<SHOW/>")
        self.assertEqual(res.commands, [])
        self.assertEqual(res.skipped[0].tag, "SHOW")


class TestSearchReplace(unittest.TestCase):
    def test_blocks(self):
        ops = parse_search_replace(PATCH_BODY)
        self.assertEqual([(o.search, o.replace) for o in ops], [("A", "A B"), ("A B", "A B C")])

    def test_multiline_and_crlf(self):
        body = "<<<<<<< SEARCH\r\none\r\ntwo\r\n=======\r\n1\r\n\r\n2\r\n>>>>>>> REPLACE\r\n"
        ops = parse_search_replace(body)
        self.assertEqual([(o.search, o.replace) for o in ops], [("one\ntwo", "1\n\n2")])

    def test_empty_search_parses(self):
        ops = parse_search_replace("<<<<<<< SEARCH\n=======\nx\n>>>>>>> REPLACE")
        self.assertEqual([(o.search, o.replace) for o in ops], [("", "x")])

    def test_unterminated(self):
        with self.assertRaises(MalformedCommand):
            parse_search_replace("<<<<<<< SEARCH\na\n=======\nb\n")

    def test_none(self):
        with self.assertRaises(MalformedCommand):
            parse_search_replace("nothing")


def test_report_warns_about_unknown_tags(capsys):
    parse_commands('<FOO path="x"/> <WRITE path="a">b</WRITE>').report()
    assert "[warn] unknown tag <FOO> skipped" in capsys.readouterr().err
