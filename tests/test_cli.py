from pathlib import Path

from ai_refactor import cli, config, tokens


def test_deps_prints_discovery_order(tmp_path: Path, capsys):
    (tmp_path / "a.js").write_text("//./b.js//\n//./gone.js//\n")
    (tmp_path / "b.js").write_text("B\n")
    code = cli.main(["--root", str(tmp_path), "deps", "a.js"])
    out = capsys.readouterr().out.splitlines()
    assert out[:2] == ["a.js", "b.js"]
    assert out[2].startswith("? ./gone.js (imported from a.js")
    assert code == 1


def test_unknown_dialect_is_a_usage_error(tmp_path: Path):
    (tmp_path / "a.js").write_text("x\n")
    assert cli.main(["--root", str(tmp_path), "deps", "a.js", "--dialect", "cobol"]) == 2


def test_refactor_end_to_end(tmp_path: Path, monkeypatch, capsys):
    (tmp_path / "main.py").write_text("x = 1\n\n# set x to 2\n")
    reply = '<PATCH path="main.py">\n<<<<<<< SEARCH\nx = 1\n=======\nx = 2\n>>>>>>> REPLACE\n</PATCH>'
    monkeypatch.setattr(cli, "ChatCompletionsClient", lambda: (lambda prompt, options=None: reply))
    monkeypatch.setattr(tokens, "count_tokens", lambda text, encoding="": len(text))
    monkeypatch.setattr(config, "DISABLE_HISTORY", True)
    code = cli.main(["--root", str(tmp_path), "refactor", "main.py"])
    assert code == 0
    assert (tmp_path / "main.py").read_text() == "x = 2\n\n# set x to 2\n"
    assert "[refactor] applied 1 of 1" in capsys.readouterr().out


def test_sandbox_violation_exits_nonzero(tmp_path: Path, monkeypatch, capsys):
    root = tmp_path / "ws"
    root.mkdir()
    monkeypatch.setattr(cli, "ChatCompletionsClient", lambda: (lambda prompt, options=None: ""))
    assert cli.main(["--root", str(root), "refactor", "../x.py"]) == 1
    assert "[error]" in capsys.readouterr().err
