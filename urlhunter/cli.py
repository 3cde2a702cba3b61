"""
Command-line entry point.

Example:
    urlhunter --keywords keywords.txt --date 2020-11-20
"""

import argparse
import logging
import sys
import threading
from typing import Dict, List, Optional

from tqdm import tqdm

from urlhunter import __version__
from urlhunter.core.controller import HunterController, RunConfig
from urlhunter.core.errors import ConfigurationError, HunterError
from urlhunter.core.logger import initialize_logging


DATE_HELP = """You may specify either a single date, a range, or a year:
  Single date: "2020-11-20"
  Date range:  "2020-11-10:2020-11-20"
  Full year:   "2024" (searches the entire year)
  Latest:      "latest" (the most recent release)"""


class DownloadProgress:
    """Shows one byte-counting progress bar per file being downloaded."""

    def __init__(self):
        self._bars: Dict[str, tqdm] = {}
        self._lock = threading.Lock()

    def __call__(self, name: str, done: int, total: Optional[int]) -> None:
        with self._lock:
            bar = self._bars.get(name)
            if bar is None:
                bar = tqdm(total=total, desc=name, unit='B', unit_scale=True,
                           unit_divisor=1024, leave=False, file=sys.stderr)
                self._bars[name] = bar
            bar.update(done - bar.n)
            if total is not None and done >= total:
                bar.close()
                del self._bars[name]

    def close(self) -> None:
        with self._lock:
            for bar in self._bars.values():
                bar.close()
            self._bars.clear()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='urlhunter',
        description='Search URLTeam URL-shortener dumps for keywords.',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog='Example: urlhunter --keywords keywords.txt --date 2020-11-20',
    )
    parser.add_argument('-k', '--keywords', required=True, metavar='FILE',
                        help='Path to a file that contains strings to search.')
    parser.add_argument('-d', '--date', required=True, metavar='DATE',
                        help=DATE_HELP)
    parser.add_argument('-o', '--output', metavar='FILE',
                        help='File where results are appended. Results are printed to stdout if omitted.')
    parser.add_argument('-a', '--archives', default='archives', metavar='DIR',
                        help='Directory where archive files are stored (default: ./archives).')
    parser.add_argument('--rm', action='store_true',
                        help='Remove downloaded archive folders after processing to save disk space.')
    parser.add_argument('-w', '--workers', type=int, default=3, metavar='N',
                        help='Number of dates processed in parallel for ranges (default: 3).')
    parser.add_argument('--log-dir', metavar='DIR',
                        help='Also write a detailed log file to this directory.')
    parser.add_argument('-v', '--verbose', action='store_true', help='Show debug output.')
    parser.add_argument('--version', action='version', version=f'%(prog)s {__version__}')
    return parser


def config_from_args(args: argparse.Namespace) -> RunConfig:
    return RunConfig(
        keywords_path=args.keywords,
        date_param=args.date,
        output_path=args.output,
        archives_root=args.archives,
        remove_after=args.rm,
        workers=args.workers,
        log_dir=args.log_dir,
        verbose=args.verbose,
    )


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    config = config_from_args(args)

    logger = initialize_logging(config.log_dir, logging.DEBUG if config.verbose else logging.INFO)

    try:
        selection = config.validate()
    except ConfigurationError as e:
        logger.error(str(e))
        parser.print_usage(sys.stderr)
        return 1

    progress = DownloadProgress()
    controller = None
    try:
        controller = HunterController(config, logger=logger, progress=progress)
        summaries = controller.run(selection)
    except HunterError as e:
        logger.error(f"Error processing archive: {e}")
        return 1
    finally:
        progress.close()
        if controller is not None:
            controller.close()

    if not any(s.ok for s in summaries):
        return 1
    logger.info("Search complete!")
    return 0


if __name__ == '__main__':
    sys.exit(main())
