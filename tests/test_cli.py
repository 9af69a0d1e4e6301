"""
Test the command-line interface end to end.
"""

import yaml

from photorenamer import __version__


def dest_files(tmp_path):
    root = tmp_path / "dest"
    if not root.exists():
        return []
    return sorted(str(p.relative_to(root)) for p in root.rglob("*") if p.is_file())


class TestBootstrap:
    """A missing config file is created and the run stops."""

    def test_creates_default_config(self, tmp_path, cli_runner):
        config_path = tmp_path / "fresh" / "photorenamer.yml"

        result = cli_runner("--config", config_path)

        assert result.exit_code == 0
        assert "New config file" in result.output
        data = yaml.safe_load(config_path.read_text())
        assert data["input_dirs"] == ["."]
        assert set(data["extensions"]) == {"standard", "raw", "movie"}
        assert not (tmp_path / "fresh" / "output").exists()

    def test_default_config_location(self, tmp_path, cli_runner, monkeypatch):
        monkeypatch.chdir(tmp_path)

        result = cli_runner()

        assert result.exit_code == 0
        assert (tmp_path / "photorenamer.yml").exists()

    def test_version(self, cli_runner):
        result = cli_runner("--version")
        assert result.exit_code == 0
        assert f"photorenamer version {__version__}" in result.output


class TestCopyRun:
    """Full runs driven by a config file."""

    def test_copy_and_rerun(self, tmp_path, create_test_files, write_config, cli_runner):
        create_test_files([
            {"name": "IMG_20230115_143000.jpg"},
            {"name": "IMG_20230115_143000.dng"},
            {"name": "notes.txt"},
        ])
        config_path = write_config()

        first = cli_runner("--config", config_path)
        second = cli_runner("--config", config_path, "rename")

        assert first.exit_code == 0
        assert "Copy completed successfully" in first.output
        assert second.exit_code == 0
        assert dest_files(tmp_path) == ["photos/20230115_143000.jpg", "raw/20230115_143000.dng"]

        runs = (tmp_path / "state" / "history" / "runs.log").read_text().splitlines()
        assert len(runs) == 2
        assert "SUCCESS" in runs[0] and "Copied: 2" in runs[0]
        assert "Copied: 0" in runs[1] and "Already copied: 2" in runs[1]

    def test_run_log_written(self, tmp_path, create_test_files, write_config, cli_runner):
        create_test_files([{"name": "IMG_20230115_143000.jpg"}])

        cli_runner("--config", write_config())

        run_logs = list((tmp_path / "state" / "history").glob("*/run.log"))
        assert len(run_logs) == 1
        assert "20230115_143000.jpg" in run_logs[0].read_text(encoding="utf-8")

    def test_own_bookkeeping_not_scanned(self, tmp_path, create_test_files, write_config, cli_runner):
        create_test_files([{"name": "IMG_20230115_143000.jpg"}])
        config_path = write_config(input_dirs=["."], ledger_path="photorenamer.ledger")

        cli_runner("--config", config_path)
        cli_runner("--config", config_path)

        runs = (tmp_path / "history" / "runs.log").read_text().splitlines()
        assert len(runs) == 2
        # Only the config file itself is an unrecognized type
        assert all("Ignored: 1 |" in run for run in runs)
        assert "Already copied: 1" in runs[1]

    def test_paths_relative_to_config(self, tmp_path, create_test_files, write_config,
                                      cli_runner, monkeypatch):
        create_test_files([{"name": "IMG_20230115_143000.jpg"}])
        elsewhere = tmp_path / "elsewhere"
        elsewhere.mkdir()
        monkeypatch.chdir(elsewhere)

        result = cli_runner("--config", write_config())

        assert result.exit_code == 0
        assert dest_files(tmp_path) == ["photos/20230115_143000.jpg"]
        assert not any(elsewhere.iterdir())

    def test_dry_run_writes_nothing(self, tmp_path, create_test_files, write_config, cli_runner):
        create_test_files([{"name": "IMG_20230115_143000.jpg"}])

        result = cli_runner("--config", write_config(), "--dry-run")

        assert result.exit_code == 0
        assert "DRY RUN" in result.output
        assert dest_files(tmp_path) == []
        assert not (tmp_path / "state").exists()

    def test_ledger_override(self, tmp_path, create_test_files, write_config, cli_runner):
        create_test_files([{"name": "IMG_20230115_143000.jpg"}])
        other_ledger = tmp_path / "elsewhere" / "other.ledger"

        result = cli_runner("--config", write_config(), "--ledger", other_ledger)

        assert result.exit_code == 0
        assert other_ledger.exists()
        assert not (tmp_path / "state" / "copies.ledger").exists()

    def test_per_file_errors_exit_nonzero(self, tmp_path, create_test_files, write_config, cli_runner):
        create_test_files([{"name": "IMG_20230115_143000.jpg"}])

        result = cli_runner("--config", write_config(input_dirs=["source", "nowhere"]))

        assert result.exit_code == 1
        assert "Completed with 1 errors" in result.output
        assert dest_files(tmp_path) == ["photos/20230115_143000.jpg"]
        error_logs = list((tmp_path / "state" / "history").glob("*/errors.log"))
        assert len(error_logs) == 1
        assert "nowhere" in error_logs[0].read_text(encoding="utf-8")
        assert "PARTIAL" in (tmp_path / "state" / "history" / "runs.log").read_text()


class TestFatalErrors:
    """Configuration and ledger problems stop before anything is copied."""

    def test_unwritable_history_is_fatal(self, tmp_path, create_test_files, write_config, cli_runner):
        create_test_files([{"name": "IMG_20230115_143000.jpg"}])
        (tmp_path / "state").write_text("a file where the ledger directory should be")

        result = cli_runner("--config", write_config())

        assert result.exit_code == 1
        assert "Fatal error" in result.output
        assert dest_files(tmp_path) == []

    def test_invalid_yaml(self, tmp_path, cli_runner):
        config_path = tmp_path / "renamer.yml"
        config_path.write_text("input_dirs: [unclosed\n")

        result = cli_runner("--config", config_path)

        assert result.exit_code == 1
        assert "Configuration error" in result.output

    def test_overlapping_extensions(self, tmp_path, create_test_files, write_config, cli_runner):
        create_test_files([{"name": "IMG_20230115_143000.jpg"}])
        config_path = write_config(extensions={"standard": ["jpg"], "raw": ["JPG"]})

        result = cli_runner("--config", config_path)

        assert result.exit_code == 1
        assert "Configuration error" in result.output
        assert dest_files(tmp_path) == []

    def test_unknown_timezone(self, write_config, cli_runner):
        result = cli_runner("--config", write_config(timezone="Mars/Olympus_Mons"))
        assert result.exit_code == 1
        assert "Configuration error" in result.output

    def test_corrupt_ledger(self, tmp_path, create_test_files, write_config, cli_runner):
        create_test_files([{"name": "IMG_20230115_143000.jpg"}])
        ledger = tmp_path / "state" / "copies.ledger"
        ledger.parent.mkdir(parents=True)
        ledger.write_text("this is not json\n{}\n")

        result = cli_runner("--config", write_config())

        assert result.exit_code == 1
        assert "Ledger error" in result.output
        assert dest_files(tmp_path) == []


class TestRebase:
    """Moving a source library without re-copying it."""

    def test_rebase_after_move(self, tmp_path, create_test_files, write_config, cli_runner):
        source = create_test_files([{"name": "IMG_20230115_143000.jpg"}])
        cli_runner("--config", write_config())

        moved = tmp_path / "moved"
        source.rename(moved)
        config_path = write_config(input_dirs=["moved"])

        dry = cli_runner("--config", config_path, "--dry-run", "rebase", source, moved)
        result = cli_runner("--config", config_path, "rebase", source, moved)
        rerun = cli_runner("--config", config_path)

        assert "Would update 1 ledger entries" in dry.output
        assert result.exit_code == 0
        assert "Updated 1 ledger entries" in result.output
        assert rerun.exit_code == 0
        assert dest_files(tmp_path) == ["photos/20230115_143000.jpg"]

    def test_rebase_requires_both_roots(self, write_config, cli_runner):
        result = cli_runner("--config", write_config(), "rebase", "/only/one")
        assert result.exit_code == 2
