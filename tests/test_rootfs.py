import pytest

from glitch_installer.lib import rootfs
from glitch_installer.lib.rootfs import (
    locate_squashfs,
    parse_rsync_percent,
    render_excludes,
    rsync_live_system,
    scale_progress,
    slim_target,
)


@pytest.mark.parametrize(
    "line,expected",
    [
        ("  1,234,567  42%   10.00MB/s    0:01:02 (xfr#10, ir-chk=100/200)", 42),
        ("  9,999,999 100%   12.00MB/s    0:00:00 (xfr#99, to-chk=0/99)", 100),
        ("sending incremental file list", None),
        ("", None),
    ],
)
def test_parse_rsync_percent(line, expected):
    assert parse_rsync_percent(line) == expected


def test_scale_progress_is_monotonic_within_band():
    values = [scale_progress(p, 40, 79) for p in range(0, 101)]
    assert values[0] == 40
    assert values[-1] == 79
    assert values == sorted(values)
    assert scale_progress(250, 40, 79) == 79
    assert scale_progress(-5, 40, 79) == 40


def test_excludes_include_target_mount():
    lines = render_excludes("/mnt/glitch_install/").splitlines()
    assert lines[0] == "/dev/*"
    assert "/var/cache/*" in lines
    assert lines[-1] == "/mnt/glitch_install/*"


def test_rsync_writes_excludes_and_reports_progress(tmp_path, monkeypatch):
    seen = []

    def fake_stream(argv, *, on_line=None, check=True, dry_run=False):
        seen.append(argv)
        for line in ("sending incremental file list", "   100  10%  1MB/s", "   900  95%  1MB/s"):
            on_line(line)
        return 0

    monkeypatch.setattr(rootfs, "stream_cmd", fake_stream)
    progress = []
    exclude_file = tmp_path / "excludes.txt"
    rsync_live_system(
        target_root="/mnt/t",
        exclude_file=str(exclude_file),
        progress=lambda p, m: progress.append(p),
    )

    assert exclude_file.read_text(encoding="utf-8").splitlines()[-1] == "/mnt/t/*"
    assert seen[0][:3] == ["rsync", "-aAXH", "--info=progress2"]
    assert f"--exclude-from={exclude_file}" in seen[0]
    assert seen[0][-2:] == ["/", "/mnt/t"]
    assert progress == [10, 95]


def test_locate_squashfs_configured(tmp_path):
    image = tmp_path / "filesystem.squashfs"
    image.write_bytes(b"")
    assert locate_squashfs(str(image)) == str(image)
    with pytest.raises(RuntimeError):
        locate_squashfs(str(tmp_path / "missing.squashfs"))


def test_extract_squashfs_progress(commands, monkeypatch):
    commands.respond("unsquashfs -l", stdout="squashfs-root\n" + "squashfs-root/f\n" * 199)

    def fake_stream(argv, *, on_line=None, check=True, dry_run=False):
        for i in range(200):
            on_line(f"/mnt/t/f{i}")
        return 0

    monkeypatch.setattr(rootfs, "stream_cmd", fake_stream)
    progress = []
    rootfs.extract_squashfs(image="/x.squashfs", target_root="/mnt/t", progress=lambda p, m: progress.append(p))
    assert progress == [50, 100, 100]


def test_slim_target_keeps_newest_kernel(tmp_path):
    root = tmp_path
    for rel in ("usr/share/doc/bash", "usr/share/locale/en_US", "usr/share/locale/de", "lib/modules/6.1.0-9", "lib/modules/6.1.0-10"):
        (root / rel).mkdir(parents=True)
    (root / "boot").mkdir()
    for name in ("vmlinuz-6.1.0-9", "initrd.img-6.1.0-9", "vmlinuz-6.1.0-10", "initrd.img-6.1.0-10"):
        (root / "boot" / name).write_text("", encoding="utf-8")

    slim_target(str(root))

    assert not (root / "usr/share/doc/bash").exists()
    assert (root / "usr/share/locale/en_US").is_dir()
    assert not (root / "usr/share/locale/de").exists()
    assert sorted(p.name for p in (root / "boot").iterdir()) == ["initrd.img-6.1.0-10", "vmlinuz-6.1.0-10"]
    assert [p.name for p in (root / "lib/modules").iterdir()] == ["6.1.0-10"]


def test_slim_target_dry_run_removes_nothing(tmp_path):
    (tmp_path / "usr/share/doc/bash").mkdir(parents=True)
    slim_target(str(tmp_path), dry_run=True)
    assert (tmp_path / "usr/share/doc/bash").is_dir()


@pytest.mark.parametrize("rc", [0, 24])
def test_rsync_tolerates_vanished_files(tmp_path, monkeypatch, rc):
    monkeypatch.setattr(rootfs, "stream_cmd", lambda argv, **kw: rc)
    rsync_live_system(target_root="/mnt/t", exclude_file=str(tmp_path / "excludes.txt"))


def test_rsync_other_failures_raise(tmp_path, monkeypatch):
    monkeypatch.setattr(rootfs, "stream_cmd", lambda argv, **kw: 23)
    with pytest.raises(RuntimeError, match="23"):
        rsync_live_system(target_root="/mnt/t", exclude_file=str(tmp_path / "excludes.txt"))


def _host(tmp_path):
    host = tmp_path / "host"
    (host / "etc/apt").mkdir(parents=True)
    (host / "etc/apt/sources.list").write_text("deb http://deb.debian.org/debian bookworm main\n", encoding="utf-8")
    (host / "etc/passwd").write_text("root:x:0:0::/root:/bin/bash\nglitch:x:1000:1000::/home/glitch:/bin/bash\n", encoding="utf-8")
    (host / "etc/sudoers").write_text("root ALL=(ALL:ALL) ALL\n", encoding="utf-8")
    (host / "home/glitch").mkdir(parents=True)
    return host


def test_minimal_system_install(commands, tmp_path):
    host = _host(tmp_path)
    target = tmp_path / "target"

    rootfs.minimal_system_install(
        target_root=str(target),
        hostname="glitchbox",
        suite="bookworm",
        mirror="http://deb.debian.org/debian",
        packages=["linux-image-amd64", "grub-pc", "linux-image-amd64"],
        host_root=str(host),
    )

    assert commands.calls[0] == [
        "debootstrap",
        "--variant=minbase",
        "--include=linux-image-amd64,grub-pc",
        "bookworm",
        str(target),
        "http://deb.debian.org/debian",
    ]
    # no hostname/hosts on the host side: fall back to generated ones
    assert (target / "etc/hostname").read_text(encoding="utf-8") == "glitchbox\n"
    assert (target / "etc/hosts").read_text(encoding="utf-8") == "127.0.0.1 localhost\n"
    assert (target / "etc/apt/sources.list").read_text(encoding="utf-8").startswith("deb http://deb.debian.org")
    assert "iface eth0 inet dhcp" in (target / "etc/network/interfaces").read_text(encoding="utf-8")
    assert "glitch:x:1000" in (target / "etc/passwd").read_text(encoding="utf-8")
    assert (target / "etc/sudoers").is_file()
    assert not (target / "etc/shadow").exists()

    joined = commands.joined()
    assert f"mknod -m 666 {target}/dev/null c 1 3" in joined
    assert f"rsync -a {host}/home/ {target}/home/" in joined
    assert f"chown -R glitch:glitch {target}/home/glitch" in joined
    assert not any(c.startswith(f"rsync -a {host}/etc/skel") for c in joined)


def test_minimal_system_install_keeps_host_identity(commands, tmp_path):
    host = _host(tmp_path)
    (host / "etc/hostname").write_text("live\n", encoding="utf-8")
    (host / "etc/hosts").write_text("127.0.0.1 localhost live\n", encoding="utf-8")
    target = tmp_path / "target"

    rootfs.minimal_system_install(
        target_root=str(target),
        hostname="glitchbox",
        suite="bookworm",
        mirror="http://deb.debian.org/debian",
        packages=[],
        host_root=str(host),
    )

    assert (target / "etc/hostname").read_text(encoding="utf-8") == "live\n"
    assert "live" in (target / "etc/hosts").read_text(encoding="utf-8")
    assert commands.calls[0][:2] == ["debootstrap", "--variant=minbase"]
    assert not any(a.startswith("--include") for a in commands.calls[0])
