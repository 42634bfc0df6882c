import json
from pathlib import Path

import pytest

from limitless_sync import cli
from limitless_sync.sync import SyncSummary
from limitless_sync.util import API_KEY_ENV_VAR


@pytest.fixture(autouse=True)
def api_key(monkeypatch) -> None:
    monkeypatch.setenv(API_KEY_ENV_VAR, "test-key")


class TestParser:
    def test_sync_flags(self) -> None:
        args = cli.build_parser().parse_args(
            ["sync", "--dir", "tmp", "--since", "2023-01-01", "--until", "2023-12-31", "--poll", "5"]
        )

        assert args.dir == "tmp"
        assert args.since == "2023-01-01"
        assert args.until == "2023-12-31"
        assert args.poll == 5

    def test_sync_defaults(self) -> None:
        args = cli.build_parser().parse_args(["sync"])

        assert args.dir == "transcripts"
        assert args.poll is None
        assert args.limit == 10

    def test_poll_without_value_defaults_to_three_minutes(self) -> None:
        args = cli.build_parser().parse_args(["sync", "--poll"])

        assert args.poll == 3

    def test_convert_flags(self) -> None:
        args = cli.build_parser().parse_args(["convert", "md", "a.json", "b.json", "--outdir", "out", "--type", "txt"])

        assert args.fmt == "md"
        assert args.files == ["a.json", "b.json"]
        assert args.outdir == "out"
        assert args.type == "txt"

    def test_command_is_required(self) -> None:
        with pytest.raises(SystemExit):
            cli.build_parser().parse_args([])


class TestMain:
    def test_missing_api_key_aborts_before_any_command(self, monkeypatch, tmp_path: Path) -> None:
        monkeypatch.delenv(API_KEY_ENV_VAR)
        called = []
        monkeypatch.setattr(cli, "run_convert", lambda *a, **kw: called.append(a))

        with pytest.raises(SystemExit) as exc:
            cli.main(["convert", "md", str(tmp_path / "x.json")])

        assert exc.value.code == 1
        assert called == []

    def test_sync_dispatch_normalizes_options(self, monkeypatch) -> None:
        seen = {}

        def fake_run_sync(client, opts):
            seen["client"] = client
            seen["opts"] = opts
            return SyncSummary()

        monkeypatch.setattr(cli, "run_sync", fake_run_sync)

        code = cli.main(["--quiet", "sync", "--dir", "out", "--since", "2024-01-02T03:04:05Z",
                         "--timezone", "Europe/Berlin", "--poll", "2"])

        assert code == 0
        opts = seen["opts"]
        assert opts.dir == Path("out")
        assert opts.since == "2024-01-02 03:04:05"
        assert opts.timezone == "Europe/Berlin"
        assert opts.poll == 2
        assert opts.quiet
        assert seen["client"].key == "test-key"
        assert seen["client"].limiter.min_delay == 3.0

    def test_unknown_timezone_warns_once(self, monkeypatch, capsys) -> None:
        seen = {}

        def fake_run_sync(client, opts):
            seen["opts"] = opts
            return SyncSummary()

        monkeypatch.setattr(cli, "run_sync", fake_run_sync)

        assert cli.main(["sync", "--timezone", "Not/AZone", "--since", "d-1"]) == 0
        assert seen["opts"].timezone == "UTC"
        assert capsys.readouterr().err.count("falling back to UTC") == 1

    def test_interrupted_sync_exit_code(self, monkeypatch) -> None:
        monkeypatch.setattr(cli, "run_sync", lambda client, opts: SyncSummary(interrupted=True))

        assert cli.main(["sync"]) == cli.EXIT_INTERRUPTED

    def test_invalid_since_is_a_usage_error(self) -> None:
        with pytest.raises(SystemExit) as exc:
            cli.main(["sync", "--since", "someday"])

        assert exc.value.code == 2

    def test_non_positive_poll_is_a_usage_error(self) -> None:
        with pytest.raises(SystemExit) as exc:
            cli.main(["sync", "--poll", "0"])

        assert exc.value.code == 2

    def test_unknown_format_is_a_usage_error(self, tmp_path: Path) -> None:
        with pytest.raises(SystemExit) as exc:
            cli.main(["convert", "pdf", str(tmp_path / "x.json")])

        assert exc.value.code == 2

    def test_convert_type_overrides_positional(self, tmp_path: Path) -> None:
        record = tmp_path / "r.json"
        record.write_text(json.dumps({"data": {"lifelog": {"id": "r1", "markdown": "m", "contents": []}}}))

        code = cli.main(["convert", "md", str(tmp_path / "*.json"), "--type", "txt"])

        assert code == 0
        assert (tmp_path / "r1.txt").exists()
        assert not (tmp_path / "r1.md").exists()

    def test_convert_without_matches_fails(self, tmp_path: Path, capsys) -> None:
        code = cli.main(["convert", "vtt", str(tmp_path / "*.json")])

        assert code == 1
        assert "No files matched" in capsys.readouterr().err

    def test_convert_errors_set_exit_code(self, tmp_path: Path) -> None:
        (tmp_path / "bad.json").write_text("{}")

        assert cli.main(["convert", "md", str(tmp_path / "bad.json")]) == 1
