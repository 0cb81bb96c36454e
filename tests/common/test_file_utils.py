import stat

from common.file_utils import (
    append_line_if_missing,
    ensure_directory,
    merge_assignment_lines,
    remove_path,
    replace_or_insert_assignments,
    write_file_if_changed,
)


def _mode(path):
    return stat.S_IMODE(path.stat().st_mode)


def test_write_file_if_changed_creates_with_mode(tmp_path, app_settings):
    target = tmp_path / "secrets" / "token"

    changed = write_file_if_changed(target, "abc\n", 0o600, app_settings)

    assert changed is True
    assert target.read_text() == "abc\n"
    assert _mode(target) == 0o600


def test_write_file_if_changed_skips_identical_content(tmp_path, app_settings):
    target = tmp_path / "locale.sh"
    target.write_text("export LANG=C.UTF-8\n")
    target.chmod(0o600)

    changed = write_file_if_changed(
        target, "export LANG=C.UTF-8\n", 0o644, app_settings
    )

    assert changed is False
    assert _mode(target) == 0o644


def test_write_file_if_changed_rewrites_different_content(tmp_path, app_settings):
    target = tmp_path / "f"
    target.write_text("old\n")

    assert write_file_if_changed(target, "new\n", 0o644, app_settings) is True
    assert target.read_text() == "new\n"


def test_merge_assignment_lines_replaces_and_dedupes():
    existing = [
        'PATH="/usr/bin"',
        "LANG=en_US.UTF-8",
        "LC_ALL=en_US.UTF-8",
        "LANG=fr_FR.UTF-8",
    ]

    merged = merge_assignment_lines(
        existing,
        {"LANG": "C.UTF-8", "LC_ALL": "C.UTF-8", "LANGUAGE": "C.UTF-8"},
    )

    assert merged == [
        'PATH="/usr/bin"',
        "LANG=C.UTF-8",
        "LC_ALL=C.UTF-8",
        "LANGUAGE=C.UTF-8",
    ]


def test_replace_or_insert_assignments_is_idempotent(tmp_path, app_settings):
    environment = tmp_path / "environment"
    environment.write_text('PATH="/usr/bin"\nLANG=en_US.UTF-8\n')
    assignments = {"LANG": "C.UTF-8", "LC_ALL": "C.UTF-8"}

    first = replace_or_insert_assignments(environment, assignments, app_settings)
    content_after_first = environment.read_text()
    second = replace_or_insert_assignments(environment, assignments, app_settings)

    assert first is True
    assert second is False
    assert environment.read_text() == content_after_first
    assert content_after_first.count("LANG=") == 1


def test_append_line_if_missing(tmp_path, app_settings):
    fstab = tmp_path / "fstab"
    fstab.write_text("# static file system information")

    assert append_line_if_missing(fstab, "UUID=1 /data ext4 defaults 0 2", 0o644, app_settings) is True
    assert append_line_if_missing(fstab, "UUID=1 /data ext4 defaults 0 2", 0o644, app_settings) is False
    assert fstab.read_text() == (
        "# static file system information\nUUID=1 /data ext4 defaults 0 2\n"
    )


def test_ensure_directory_sets_mode(tmp_path, app_settings):
    target = tmp_path / "a" / ".ssh"

    ensure_directory(target, 0o700, app_settings)

    assert target.is_dir()
    assert _mode(target) == 0o700


def test_remove_path_handles_files_dirs_and_missing(tmp_path, app_settings):
    directory = tmp_path / "repo"
    (directory / "sub").mkdir(parents=True)
    (directory / "sub" / "file").write_text("x")
    single = tmp_path / "single"
    single.write_text("x")

    remove_path(directory, app_settings)
    remove_path(single, app_settings)
    remove_path(tmp_path / "missing", app_settings)

    assert not directory.exists()
    assert not single.exists()
