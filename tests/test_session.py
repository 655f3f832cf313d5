import re
from pathlib import Path

from ai_refactor.session import RESPONSE, SessionLog, format_response_log, format_timestamp


def test_writes_history_and_latest(tmp_path: Path):
    log = SessionLog(
        ai_dir=tmp_path / "ai",
        history_dir=tmp_path / "ai" / "hist",
        timestamp="2024-01-02-03-04-05",
        enabled=True,
    )
    assert log.write(RESPONSE, "body")
    assert (tmp_path / "ai" / "hist" / "2024-01-02-03-04-05-response.txt").read_text() == "body"
    assert (tmp_path / "ai" / "refactor-response.txt").read_text() == "body"


def test_disabled_log_writes_nothing(tmp_path: Path):
    log = SessionLog(ai_dir=tmp_path / "ai", history_dir=tmp_path / "h", enabled=False)
    assert not log.write(RESPONSE, "body")
    assert not (tmp_path / "ai").exists()


def test_write_failure_is_a_warning(tmp_path: Path, capsys):
    blocker = tmp_path / "file"
    blocker.write_text("not a dir")
    log = SessionLog(ai_dir=blocker, history_dir=blocker / "h", enabled=True)
    assert not log.write(RESPONSE, "body")
    assert "[warn]" in capsys.readouterr().err


def test_timestamp_format():
    assert re.fullmatch(r"\d{4}-\d{2}-\d{2}-\d{2}-\d{2}-\d{2}", format_timestamp())


def test_response_log_sections():
    text = format_response_log("cp", "cr", "er")
    assert text.index("=== COMPACTOR PROMPT ===") < text.index("cp")
    assert text.index("=== EDITOR RESPONSE ===") < text.index("er")
