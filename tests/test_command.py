import logging

import pytest

from glitch_installer.lib.command import run_cmd, stream_cmd


def test_run_cmd_captures_output():
    r = run_cmd(["sh", "-c", "echo out; echo err >&2"])
    assert r.returncode == 0
    assert r.stdout == "out\n"
    assert r.stderr == "err\n"


def test_run_cmd_failure():
    with pytest.raises(RuntimeError, match=r"Command failed \(3\)"):
        run_cmd(["sh", "-c", "exit 3"])
    assert run_cmd(["sh", "-c", "exit 3"], check=False).returncode == 3


def test_run_cmd_stdin_is_not_logged(caplog):
    caplog.set_level(logging.DEBUG)
    r = run_cmd(["cat"], input_text="top-secret", log_output=False)
    assert r.stdout == "top-secret"
    assert "CMD cat" in caplog.text
    assert "top-secret" not in caplog.text


def test_run_cmd_dry_run(tmp_path):
    marker = tmp_path / "marker"
    r = run_cmd(["touch", str(marker)], dry_run=True)
    assert r.returncode == 0
    assert not marker.exists()


def test_stream_cmd_splits_carriage_returns():
    lines = []
    rc = stream_cmd(["sh", "-c", r"printf '10%%\r50%%\r100%%\ndone\n'"], on_line=lines.append)
    assert rc == 0
    assert lines == ["10%", "50%", "100%", "done"]


def test_stream_cmd_failure():
    with pytest.raises(RuntimeError):
        stream_cmd(["sh", "-c", "echo partial; exit 5"])
    assert stream_cmd(["sh", "-c", "exit 5"], check=False) == 5
