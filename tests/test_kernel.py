import pytest

from glitch_installer.lib.kernel import find_kernel_initrd, kernel_versions, version_key


def test_version_sort_is_numeric():
    versions = ["6.1.0-9-amd64", "6.1.0-10-amd64", "5.10.0-28-amd64"]
    assert sorted(versions, key=version_key) == ["5.10.0-28-amd64", "6.1.0-9-amd64", "6.1.0-10-amd64"]


def test_newest_kernel_with_initrd(make_boot):
    target = make_boot(
        "vmlinuz-6.1.0-9-amd64",
        "initrd.img-6.1.0-9-amd64",
        "vmlinuz-6.1.0-10-amd64",
        "initrd.img-6.1.0-10-amd64",
        "vmlinuz-rescue",
    )
    boot = find_kernel_initrd(target)
    assert boot.kernel_version == "6.1.0-10-amd64"
    assert boot.initrd == "initrd.img-6.1.0-10-amd64"
    assert boot.kernel == "vmlinuz-6.1.0-10-amd64"


def test_alternate_initrd_names(make_boot):
    target = make_boot("vmlinuz-6.6.1", "initramfs-6.6.1.img")
    assert find_kernel_initrd(target).initrd == "initramfs-6.6.1.img"


def test_missing_kernel(make_boot):
    target = make_boot("config-6.1.0")
    with pytest.raises(RuntimeError, match="Kernel not found"):
        find_kernel_initrd(target)


def test_missing_initrd(make_boot):
    target = make_boot("vmlinuz-6.1.0")
    with pytest.raises(RuntimeError, match="Initrd not found"):
        find_kernel_initrd(target)


def test_kernel_versions_without_boot_dir(tmp_path):
    assert kernel_versions(str(tmp_path / "nope")) == []
