import logging
import os
import sys
from contextlib import contextmanager
from logging.handlers import RotatingFileHandler
from typing import Iterator, Optional

from quarto_updater.constants import DEFAULT_LOG_BACKUP_COUNT, DEFAULT_LOG_LEVEL, DEFAULT_LOG_MAX_BYTES

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


def setup_logging(log_level: str = DEFAULT_LOG_LEVEL, log_file: Optional[str] = None) -> None:
    """Setup logging configuration."""
    handlers = [logging.StreamHandler(sys.stdout)]

    if log_file:
        file_handler = RotatingFileHandler(
            log_file,
            maxBytes=DEFAULT_LOG_MAX_BYTES,
            backupCount=DEFAULT_LOG_BACKUP_COUNT,
        )
        handlers.append(file_handler)

    logging.basicConfig(
        level=getattr(logging, log_level.upper()),
        format=LOG_FORMAT,
        handlers=handlers,
        force=True,
    )

    # requests/urllib3 are noisy at DEBUG
    logging.getLogger('urllib3').setLevel(logging.WARNING)


def running_in_github_actions() -> bool:
    return os.environ.get('GITHUB_ACTIONS') == 'true'


@contextmanager
def log_group(title: str) -> Iterator[None]:
    """Fold the enclosed log lines into a collapsible group on GitHub Actions.

    Workflow commands must start a line on stdout, so they bypass the log
    formatter. Outside of Actions the title is logged as a plain INFO line.
    """
    in_actions = running_in_github_actions()
    if in_actions:
        sys.stdout.write(f'::group::{title}\n')
        sys.stdout.flush()
    else:
        logging.getLogger('quarto_updater').info(title)

    try:
        yield
    finally:
        if in_actions:
            sys.stdout.write('::endgroup::\n')
            sys.stdout.flush()
