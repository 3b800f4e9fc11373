import json

import pytest
import yaml

from glitch_installer.install_config import load_install_config, validate_config
from glitch_installer.state_store import ensure_defaults, load_state, save_state


def test_defaults():
    cfg = ensure_defaults({})["config"]
    assert cfg["target_mount"] == "/mnt/glitch_install"
    assert cfg["luks_mapper"] == "glitch_luks"
    assert cfg["install_mode"] is None
    assert cfg["encrypt"] is None
    assert cfg["cleanup"] == "ask"
    assert "linux-image-amd64" in cfg["minimal_packages"]
    validate_config(cfg)


def test_defaults_do_not_override_user_values():
    state = ensure_defaults({"config": {"hostname": "box", "install_mode": "copy"}})
    assert state["config"]["hostname"] == "box"
    assert state["config"]["install_mode"] == "copy"


def test_load_yaml_config_with_wrapper(tmp_path):
    p = tmp_path / "install.yaml"
    p.write_text(yaml.safe_dump({"config": {"target_disk": "/dev/sdb", "install_mode": "squashfs"}}), encoding="utf-8")
    assert load_install_config(str(p)) == {"target_disk": "/dev/sdb", "install_mode": "squashfs"}


def test_load_json_config(tmp_path):
    p = tmp_path / "install.json"
    p.write_text(json.dumps({"encrypt": False, "swap": "none"}), encoding="utf-8")
    assert load_install_config(str(p)) == {"encrypt": False, "swap": "none"}


def test_load_config_rejects_non_mapping(tmp_path):
    p = tmp_path / "install.yml"
    p.write_text("- a\n- b\n", encoding="utf-8")
    with pytest.raises(ValueError):
        load_install_config(str(p))


def test_load_config_rejects_unknown_extension(tmp_path):
    q = tmp_path / "install.toml"
    q.write_text("", encoding="utf-8")
    with pytest.raises(ValueError):
        load_install_config(str(q))


@pytest.mark.parametrize(
    "key,value",
    [
        ("install_mode", "netinstall"),
        ("frontend", "kdialog"),
        ("cleanup", "later"),
        ("swap", "file"),
        ("minimal_packages", "bash"),
    ],
)
def test_validate_rejects(key, value):
    cfg = ensure_defaults({})["config"]
    cfg[key] = value
    with pytest.raises(ValueError, match=key):
        validate_config(cfg)


@pytest.mark.parametrize("name", ["state.json", "state.yaml"])
def test_state_round_trip_drops_passphrase(tmp_path, name):
    path = str(tmp_path / "sub" / name)
    state = ensure_defaults({"config": {"passphrase": "hunter2", "target_disk": "/dev/sdb"}})
    state["execution"]["completed_steps"] = ["00_preflight"]

    save_state(path, state)

    assert "hunter2" not in (tmp_path / "sub" / name).read_text(encoding="utf-8")
    loaded = load_state(path)
    assert loaded["config"]["target_disk"] == "/dev/sdb"
    assert "passphrase" not in loaded["config"]
    assert loaded["execution"]["completed_steps"] == ["00_preflight"]
    # the in-memory state keeps it for the rest of the run
    assert state["config"]["passphrase"] == "hunter2"


def test_missing_state_file(tmp_path):
    assert load_state(str(tmp_path / "none.json")) == {}
