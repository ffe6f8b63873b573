"""
Outputs and job summaries for GitHub Actions runners.

Both files are optional: outside of Actions the environment variables are
unset and the values are only logged.
"""

import logging
import os
import uuid

logger = logging.getLogger(__name__)


def set_output(name: str, value: str) -> None:
    """Append a step output to $GITHUB_OUTPUT."""
    logger.debug(f'Output {name}={value}')

    output_path = os.environ.get('GITHUB_OUTPUT')
    if not output_path:
        return

    with open(output_path, 'a', encoding='utf-8') as f:
        if '\n' in value:
            delimiter = f'ghadelimiter_{uuid.uuid4()}'
            f.write(f'{name}<<{delimiter}\n{value}\n{delimiter}\n')
        else:
            f.write(f'{name}={value}\n')


def write_step_summary(markdown: str) -> bool:
    """Append markdown to $GITHUB_STEP_SUMMARY. Returns False when not on Actions."""
    summary_path = os.environ.get('GITHUB_STEP_SUMMARY')
    if not summary_path:
        return False

    with open(summary_path, 'a', encoding='utf-8') as f:
        f.write(markdown)
        if not markdown.endswith('\n'):
            f.write('\n')
    return True
