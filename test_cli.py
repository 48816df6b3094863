"""
Tests for configuration loading and the command line entry point.
"""

import io
import json
import logging

import pytest

from waybackdl import cli
from waybackdl.core.config import RunConfig, load_settings
from waybackdl.core.errors import TransportError
from waybackdl.core.models import Summary
from waybackdl.utils.rate_limiter import TokenBucket


class StubController:
    """Records the query/config it was given and replays a canned outcome."""

    instances = []
    outcome = Summary()

    def __init__(self, config):
        self.config = config
        self.query = None
        self.progress = None
        self.closed = False
        StubController.instances.append(self)

    def run(self, query, progress=None):
        self.query = query
        self.progress = progress
        if isinstance(self.outcome, Exception):
            raise self.outcome
        return self.outcome

    def close(self):
        self.closed = True


@pytest.fixture
def stub_controller(monkeypatch):
    StubController.instances = []
    StubController.outcome = Summary()
    monkeypatch.setattr(cli, "DownloadController", StubController)
    monkeypatch.setattr(cli, "initialize_logging", lambda *args, **kwargs: logging.getLogger("waybackdl.cli"))
    return StubController


def test_run_config_defaults_and_clamping():
    config = RunConfig(threads=0, max_depth=-3)
    assert config.threads == 1
    assert config.max_depth == 0
    assert not config.recursive
    assert not config.all_timestamps


def test_run_config_from_dict_ignores_unknown_keys():
    config = RunConfig.from_dict({"threads": 8, "recursive": True, "colour": "blue"})
    assert config.threads == 8
    assert config.recursive


def test_load_settings(tmp_path):
    path = tmp_path / "settings.json"
    assert load_settings(str(path)) == {}
    path.write_text(json.dumps({"threads": 4}))
    assert load_settings(str(path)) == {"threads": 4}
    path.write_text("[1, 2]")
    with pytest.raises(ValueError):
        load_settings(str(path))


def test_flags_override_settings_file(tmp_path, stub_controller):
    settings = tmp_path / "settings.json"
    settings.write_text(json.dumps({"threads": 4, "recursive": True, "timeout": 5}))
    code = cli.main(["--url", "example.com", "--dir", str(tmp_path / "out"), "--config", str(settings),
                     "--threads", "16", "--from", "2020", "--all", "--only", "mimetype:text/html"])
    assert code == 0

    controller = stub_controller.instances[0]
    assert controller.config.threads == 16
    assert controller.config.recursive
    assert controller.config.timeout == 5
    assert controller.query.from_timestamp == "2020"
    assert controller.query.only_successful is False
    assert controller.query.only_filter == "mimetype:text/html"
    assert controller.closed


def test_item_failures_exit_zero(tmp_path, stub_controller):
    stub_controller.outcome = Summary(total=2, succeeded=1, failed=1,
                                      failures=[("20200101000000 http://example.com/x", "ProtocolError: HTTP 404")])
    assert cli.main(["--url", "example.com", "--config", str(tmp_path / "none.json")]) == 0


def test_index_failure_exits_non_zero(tmp_path, stub_controller):
    stub_controller.outcome = TransportError("connection refused")
    assert cli.main(["--url", "example.com", "--config", str(tmp_path / "none.json")]) == 1
    assert stub_controller.instances[0].closed


def test_invalid_url_exits_non_zero(tmp_path, stub_controller):
    assert cli.main(["--url", "ftp://example.com", "--config", str(tmp_path / "none.json")]) == 1
    assert stub_controller.instances == []


def test_token_bucket_allows_burst_without_waiting():
    bucket = TokenBucket(rate_per_sec=1.0, burst=3)
    assert [bucket.acquire() for _ in range(3)] == [0.0, 0.0, 0.0]
    with pytest.raises(ValueError):
        TokenBucket(rate_per_sec=0)


def test_logger_writes_rotating_files(tmp_path):
    from waybackdl.core.logger import WaybackLogger

    log = WaybackLogger(str(tmp_path / "logs"), app_name="waybackdl_test")
    logger = log.setup_logger()
    try:
        log.get_logger("worker").error("disk full")
        for handler in logger.handlers:
            handler.flush()
        assert "disk full" in (tmp_path / "logs" / "waybackdl_test.log").read_text(encoding="utf-8")
        assert "disk full" in (tmp_path / "logs" / "waybackdl_test_errors.log").read_text(encoding="utf-8")
    finally:
        for handler in list(logger.handlers):
            handler.close()
            logger.removeHandler(handler)


def test_token_bucket_throttles_after_burst():
    bucket = TokenBucket(rate_per_sec=50.0, burst=1)
    assert bucket.acquire() == 0.0
    assert bucket.acquire() > 0.0


def test_progress_bar_follows_controller_events():
    bar = cli.ProgressBar(file=io.StringIO())
    bar("Discovering snapshots via CDX...")
    bar({"type": "discovery", "total": 2})
    assert bar.bar.total == 2

    bar({"type": "url", "stage": "completed", "url": "http://example.com/"})
    bar({"type": "url", "stage": "failed", "url": "http://example.com/a.js", "reason": "HTTP 404"})
    bar({"type": "url", "stage": "completed", "url": "http://example.com/style.css"})
    assert (bar.bar.n, bar.bar.total) == (3, 3)

    bar({"type": "counters", "stats": Summary(total=3, succeeded=2, failed=1)})
    bar.close()


def test_cli_passes_progress_bar_unless_disabled(tmp_path, stub_controller):
    assert cli.main(["--url", "example.com", "--config", str(tmp_path / "none.json")]) == 0
    assert isinstance(stub_controller.instances[0].progress, cli.ProgressBar)

    assert cli.main(["--url", "example.com", "--config", str(tmp_path / "none.json"), "--no-progress"]) == 0
    assert stub_controller.instances[1].progress is None
