import json

import pytest

import glitch_installer.main as main_mod
from glitch_installer.main import apply_cleanup, main, run
from glitch_installer.state_store import ensure_defaults
from glitch_installer.ui import ConsoleFrontend, StaticFrontend

PASSPHRASE = "s3cr3t-passphrase"

STEP_IDS = [
    "00_preflight",
    "10_select_target",
    "20_prepare_disk",
    "30_mount_target",
    "40_populate_rootfs",
    "50_configure_system",
    "55_slim_target",
    "60_prepare_chroot",
    "90_finalize",
]


def test_dry_run_plans_whole_install(tmp_path, make_boot, caplog):
    target = make_boot("vmlinuz-6.1.0-1", "initrd.img-6.1.0-1")
    state_path = tmp_path / "state.json"
    fe = StaticFrontend(assume_yes=True, passphrase=PASSPHRASE)

    state = run(
        state_path=str(state_path),
        log_path=str(tmp_path / "install.log"),
        overrides={
            "target_disk": "/dev/sdz",
            "install_mode": "copy",
            "encrypt": True,
            "target_mount": target,
            "firmware": "efi",
            "cleanup": "teardown",
            "exclude_file": str(tmp_path / "excludes.txt"),
            "dry_run": True,
        },
        frontend=fe,
    )

    assert state["execution"]["completed_steps"] == STEP_IDS
    assert state["execution"]["decisions"]["kernel_version"] == "6.1.0-1"
    assert state["execution"]["decisions"]["cleanup"] == "teardown"

    commands = [r.getMessage()[4:] for r in caplog.records if r.getMessage().startswith("CMD ")]
    assert "wipefs -a /dev/sdz" in commands
    assert "cryptsetup luksFormat --type luks1 --batch-mode --key-file=- /dev/sdz2" in commands
    assert f"mount /dev/mapper/glitch_luks {target}" in commands
    assert f"chroot {target} /bin/bash /chroot_prep.sh" in commands
    assert any(c.startswith("rsync -aAXH --info=progress2") for c in commands)
    assert all(PASSPHRASE not in r.getMessage() for r in caplog.records)

    # nothing was written to the target during a dry run
    assert not (tmp_path / "target" / "etc").exists()
    assert not (tmp_path / "excludes.txt").exists()

    saved = json.loads(state_path.read_text(encoding="utf-8"))
    assert saved["execution"]["completed_steps"] == STEP_IDS
    assert PASSPHRASE not in state_path.read_text(encoding="utf-8")

    progress = [int(text.split()[0]) for kind, text in fe.messages if kind == "progress"]
    assert progress == sorted(progress)
    assert progress[-1] == 100


def test_declined_erase_exits_cleanly(tmp_path):
    state_path = tmp_path / "state.json"
    rc = main(
        [
            "--state", str(state_path),
            "--log", str(tmp_path / "install.log"),
            "--frontend", "none",
            "--device", "/dev/sdz",
            "--mode", "copy",
            "--dry-run",
        ]
    )
    assert rc == 0
    saved = json.loads(state_path.read_text(encoding="utf-8"))
    assert "10_select_target" not in saved["execution"]["completed_steps"]
    assert saved["execution"]["errors"] == []


def test_failure_is_recorded(tmp_path):
    state_path = tmp_path / "state.json"
    rc = main(
        [
            "--state", str(state_path),
            "--log", str(tmp_path / "install.log"),
            "--frontend", "none",
            "--dry-run",
            "--start-at", "99_nope",
        ]
    )
    assert rc == 1
    saved = json.loads(state_path.read_text(encoding="utf-8"))
    assert "99_nope" in saved["execution"]["errors"][0]["error"]


@pytest.fixture
def released(monkeypatch):
    calls = []
    monkeypatch.setattr(main_mod, "release_target", lambda **kw: calls.append(kw))
    return calls


def _mounted_state(**cfg):
    state = ensure_defaults({"config": dict(cfg)})
    state["execution"]["mounts"] = {"target_root": "/mnt/t", "luks_mapper": "glitch_luks"}
    state["execution"]["temp_files"] = ["/tmp/excludes.txt"]
    return state


def test_cleanup_nothing_to_do(released):
    assert apply_cleanup(ensure_defaults({}), StaticFrontend()) == "none"
    assert released == []


def test_cleanup_ask_defaults_to_keep(released):
    state = _mounted_state(cleanup="ask")
    assert apply_cleanup(state, StaticFrontend()) == "keep"
    assert released == []
    assert state["execution"]["mounts"]["target_root"] == "/mnt/t"
    assert state["execution"]["decisions"]["cleanup"] == "keep"


class _OddAnswer(StaticFrontend):
    def choose(self, title, choices, *, default=None):
        return "shred"


def test_cleanup_unknown_answer_keeps(released):
    console = ConsoleFrontend(input_fn=lambda prompt: "bogus", print_fn=lambda *a: None)
    assert apply_cleanup(_mounted_state(cleanup="ask"), console) == "keep"
    state = _mounted_state(cleanup="ask")
    assert apply_cleanup(state, _OddAnswer()) == "keep"
    assert state["execution"]["decisions"]["cleanup"] == "keep"
    assert released == []


def test_cleanup_teardown(released):
    state = _mounted_state(cleanup="teardown", dry_run=True)
    assert apply_cleanup(state, StaticFrontend()) == "teardown"
    assert released == [
        {"target_mount": "/mnt/t", "luks_mapper": "glitch_luks", "temp_files": ["/tmp/excludes.txt"], "dry_run": True}
    ]
    assert state["execution"]["mounts"] == {}
    assert state["execution"]["temp_files"] == []
    assert state["execution"]["decisions"]["cleanup"] == "teardown"
