"""
Command line entry point.

    waybackdl --url example.com --dir websites --from 2020 --to 2021 --threads 8
"""

import argparse
import logging
import sys
import threading
from typing import List, Optional

from tqdm import tqdm

from waybackdl.core.config import RunConfig, load_settings
from waybackdl.core.controller import DownloadController
from waybackdl.core.errors import WaybackError
from waybackdl.core.logger import initialize_logging
from waybackdl.core.models import SiteQuery
from waybackdl.utils.validators import validate_url


SETTINGS_FILE = ".waybackdl.json"


class ProgressBar:
    """Drives a tqdm bar from the controller's progress events."""

    def __init__(self, **tqdm_kwargs):
        self.bar = tqdm(total=0, desc="Downloading", unit="file", **tqdm_kwargs)
        self._lock = threading.Lock()

    def __call__(self, event):
        if not isinstance(event, dict):
            self.bar.set_description_str(str(event))
            return
        kind = event.get("type")
        if kind == "discovery":
            self.bar.set_description_str("Downloading")
            self.bar.total = event["total"]
            self.bar.refresh()
        elif kind == "url":
            # Discovered links are not known up front; grow the total as they finish.
            with self._lock:
                if self.bar.n >= self.bar.total:
                    self.bar.total = self.bar.n + 1
                self.bar.update(1)
        elif kind == "counters":
            self.close()

    def close(self):
        self.bar.close()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="waybackdl",
        description="Download an archived website from the Wayback Machine.",
        formatter_class=lambda prog: argparse.ArgumentDefaultsHelpFormatter(prog, width=80),
    )
    parser.add_argument("--url", required=True, help="site URL to download")
    parser.add_argument("--dir", dest="output_dir", default="websites", help="directory to save files")
    parser.add_argument("--from", dest="from_timestamp", default=None, help="from timestamp (YYYYMMDDhhmmss, may be partial)")
    parser.add_argument("--to", dest="to_timestamp", default=None, help="to timestamp (YYYYMMDDhhmmss, may be partial)")
    parser.add_argument("--only", dest="only_filter", default=None, help="extra CDX filter expression, e.g. mimetype:text/html")
    parser.add_argument("--exclude", dest="exclude_filter", default=None, help="CDX exclude expression")
    parser.add_argument("--all", action="store_true", help="include captures with non-200 status")
    parser.add_argument("--max-pages", type=int, default=100, help="maximum CDX pages to request (0 = unpaged)")
    parser.add_argument("--threads", type=int, default=None, help="number of concurrent downloads")
    parser.add_argument("--all-timestamps", action="store_true", default=None,
                        help="download one resource per capture timestamp")
    parser.add_argument("--recursive", action="store_true", default=None,
                        help="also fetch same-site resources linked from downloaded HTML")
    parser.add_argument("--max-depth", type=int, default=None, help="link levels followed with --recursive")
    parser.add_argument("--timeout", type=float, default=None, help="request timeout in seconds")
    parser.add_argument("--rate", dest="rate_limit", type=float, default=None,
                        help="maximum requests per second (0 = unthrottled)")
    parser.add_argument("--config", default=SETTINGS_FILE, help="JSON file with default run settings")
    parser.add_argument("--log-dir", default=None, help="write rotating log files to this directory")
    parser.add_argument("-v", "--verbose", action="store_true", help="debug output on the console")
    parser.add_argument("--no-progress", action="store_true", help="do not show a progress bar")
    return parser


def build_config(args: argparse.Namespace) -> RunConfig:
    """Settings file values, overridden by flags given on the command line."""
    settings = load_settings(args.config)
    for name in ("threads", "all_timestamps", "recursive", "max_depth", "timeout", "rate_limit"):
        value = getattr(args, name)
        if value is not None:
            settings[name] = value
    return RunConfig.from_dict(settings)


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    logger = initialize_logging(args.log_dir, logging.DEBUG if args.verbose else logging.INFO)

    ok, _, err = validate_url(args.url)
    if not ok:
        logger.error(f"Invalid URL {args.url!r}: {err}")
        return 1

    try:
        config = build_config(args)
    except ValueError as e:
        logger.error(f"Invalid settings: {e}")
        return 1

    query = SiteQuery(
        base_url=args.url,
        output_dir=args.output_dir,
        from_timestamp=args.from_timestamp,
        to_timestamp=args.to_timestamp,
        only_successful=not args.all,
        only_filter=args.only_filter,
        exclude_filter=args.exclude_filter,
        max_pages=args.max_pages,
    )

    controller = DownloadController(config)
    progress = None if args.no_progress else ProgressBar()
    try:
        summary = controller.run(query, progress)
    except WaybackError as e:
        logger.error(f"Error getting snapshots: {e}")
        return 1
    finally:
        if progress:
            progress.close()
        controller.close()

    logger.info(f"Total: {summary.total}  Succeeded: {summary.succeeded}  "
                f"Failed: {summary.failed}  Skipped: {summary.skipped}  Bytes: {summary.bytes_written}")
    for identifier, reason in summary.failures:
        logger.warning(f"Failed: {identifier}: {reason}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
