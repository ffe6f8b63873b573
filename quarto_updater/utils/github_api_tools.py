# The MIT License (MIT)
# Copyright © 2025 Entrius

"""
GitHub REST and GraphQL access for the updater.

Every call goes through ``github_request``/``graphql_request``, which wait
out primary rate limits and raise ``GitHubAPIError`` for any other non-2xx
response. Callers decide which failures are fatal.
"""

import base64
import logging
import time
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, Tuple

import requests

from quarto_updater.classes import PRAssignmentConfig
from quarto_updater.constants import (
    BASE_GITHUB_API_URL,
    GIT_FILE_MODE,
    GITHUB_API_TIMEOUT,
    HTTP_NOT_FOUND,
    HTTP_UNPROCESSABLE_ENTITY,
    RATE_LIMIT_BUFFER_SECONDS,
    RATE_LIMIT_MAX_ATTEMPTS,
    RATE_LIMIT_MAX_WAIT_SECONDS,
    RATE_LIMIT_MIN_REMAINING,
    SECONDS_PER_MINUTE,
)
from quarto_updater.errors import GitHubAPIError

logger = logging.getLogger(__name__)


@dataclass
class RateLimitInfo:
    """Represents GitHub API rate limit information extracted from response headers."""

    limit: int  # Maximum requests allowed per hour
    remaining: int  # Requests remaining in current window
    reset_timestamp: int  # Unix timestamp when the rate limit resets
    used: int  # Requests used in current window

    @property
    def is_exceeded(self) -> bool:
        """Check if rate limit has been exceeded."""
        return self.remaining == 0

    @property
    def seconds_until_reset(self) -> int:
        """Calculate seconds until rate limit resets."""
        current_time = int(time.time())
        return max(0, self.reset_timestamp - current_time)

    def __str__(self) -> str:
        return f"RateLimit(remaining={self.remaining}/{self.limit}, resets_in={self.seconds_until_reset}s)"


def parse_rate_limit_headers(response: requests.Response) -> Optional[RateLimitInfo]:
    """
    Parse GitHub API rate limit information from response headers.

    Args:
        response: The HTTP response from GitHub API

    Returns:
        RateLimitInfo object if headers are present, None otherwise
    """
    headers = response.headers

    try:
        limit = int(headers.get('X-RateLimit-Limit', 0))
        remaining = int(headers.get('X-RateLimit-Remaining', 0))
        reset_timestamp = int(headers.get('X-RateLimit-Reset', 0))
        used = int(headers.get('X-RateLimit-Used', 0))

        if limit == 0 and reset_timestamp == 0:
            return None

        return RateLimitInfo(limit=limit, remaining=remaining, reset_timestamp=reset_timestamp, used=used)
    except (ValueError, TypeError, AttributeError) as e:
        logger.debug(f"Could not parse rate limit headers: {e}")
        return None


def is_rate_limited(response: requests.Response) -> Tuple[bool, Optional[int]]:
    """
    Check if a response indicates rate limiting and calculate wait time.

    Returns:
        Tuple of (is_rate_limited, seconds_to_wait)
    """
    if response.status_code not in (403, 429):
        return (False, None)

    rate_limit_info = parse_rate_limit_headers(response)

    if rate_limit_info and rate_limit_info.is_exceeded:
        wait_seconds = min(rate_limit_info.seconds_until_reset + RATE_LIMIT_BUFFER_SECONDS, RATE_LIMIT_MAX_WAIT_SECONDS)
        return (True, wait_seconds)

    response_text = (response.text or '').lower()
    if 'rate limit' in response_text:
        return (True, SECONDS_PER_MINUTE)

    return (False, None)


def check_preemptive_rate_limit(response: requests.Response) -> None:
    """Log a warning when the remaining request budget is running low."""
    rate_limit_info = parse_rate_limit_headers(response)

    if rate_limit_info and rate_limit_info.remaining <= RATE_LIMIT_MIN_REMAINING:
        logger.warning(
            f"Approaching GitHub API rate limit: {rate_limit_info.remaining} requests remaining, "
            f"resets in {rate_limit_info.seconds_until_reset}s"
        )


def wait_for_rate_limit_reset(wait_seconds: int, context: str = "") -> None:
    """Wait for rate limit to reset with progress logging."""
    context_str = f" for {context}" if context else ""
    logger.warning(f"GitHub API rate limit exceeded{context_str}. Waiting {wait_seconds}s for reset...")

    if wait_seconds <= SECONDS_PER_MINUTE:
        time.sleep(wait_seconds)
    else:
        intervals = wait_seconds // SECONDS_PER_MINUTE
        remaining = wait_seconds % SECONDS_PER_MINUTE

        for i in range(intervals):
            time.sleep(SECONDS_PER_MINUTE)
            elapsed = (i + 1) * SECONDS_PER_MINUTE
            logger.info(f"Rate limit wait: {elapsed}s elapsed, {wait_seconds - elapsed}s remaining")

        if remaining > 0:
            time.sleep(remaining)

    logger.info("Rate limit wait complete, resuming API requests")


def make_headers(token: str) -> Dict[str, str]:
    """Build standard GitHub HTTP headers for a token.

    Args:
        token (str): GitHub token
    Returns:
        Dict[str, str]: Mapping of HTTP header names to values.
    """
    return {
        "Authorization": f"token {token}",
        "Accept": "application/vnd.github.v3+json",
    }


def _error_message(response: requests.Response) -> str:
    try:
        payload = response.json()
    except ValueError:
        return response.text or ''
    if isinstance(payload, dict) and payload.get('message'):
        return str(payload['message'])
    return response.text or ''


def github_request(
    method: str,
    path: str,
    token: str,
    operation: str,
    params: Optional[Dict[str, Any]] = None,
    json_body: Optional[Dict[str, Any]] = None,
) -> Any:
    """
    Send a REST request and return the decoded JSON body.

    Args:
        method (str): HTTP method
        path (str): Path below the API root, starting with '/'
        token (str): GitHub token
        operation (str): Short name of the call, used in errors and logs
        params: Optional query string parameters
        json_body: Optional JSON request body

    Returns:
        Any: Decoded JSON, or None for empty responses

    Raises:
        GitHubAPIError: on connection failures, exhausted rate limits, non-2xx responses
            and bodies that are not JSON
    """
    url = f'{BASE_GITHUB_API_URL}{path}'

    for attempt in range(RATE_LIMIT_MAX_ATTEMPTS):
        try:
            response = requests.request(
                method,
                url,
                headers=make_headers(token),
                params=params,
                json=json_body,
                timeout=GITHUB_API_TIMEOUT,
            )
        except requests.exceptions.RequestException as e:
            raise GitHubAPIError(f'{operation} failed: {e}', operation) from e

        rate_limited, wait_seconds = is_rate_limited(response)
        if rate_limited and wait_seconds:
            if attempt < RATE_LIMIT_MAX_ATTEMPTS - 1:
                wait_for_rate_limit_reset(wait_seconds, context=operation)
                continue
            raise GitHubAPIError(
                f'{operation} failed: rate limit exceeded on final attempt', operation, response.status_code
            )

        if 200 <= response.status_code < 300:
            check_preemptive_rate_limit(response)
            if response.status_code == 204 or not response.content:
                return None
            try:
                return response.json()
            except ValueError as e:
                raise GitHubAPIError(
                    f'{operation} failed: invalid JSON response: {e}', operation, response.status_code
                ) from e

        raise GitHubAPIError(
            f'{operation} failed with status {response.status_code}: {_error_message(response)}',
            operation,
            response.status_code,
        )

    raise GitHubAPIError(f'{operation} failed: no response', operation)


def graphql_request(query: str, variables: Dict[str, Any], token: str, operation: str) -> Dict[str, Any]:
    """
    Run a GraphQL query or mutation and return its ``data`` object.

    GraphQL reports most failures with HTTP 200 and an ``errors`` array; their
    messages are joined into the raised GitHubAPIError so callers can inspect
    the text.
    """
    headers = {'Authorization': f'Bearer {token}', 'Content-Type': 'application/json'}

    try:
        response = requests.post(
            f'{BASE_GITHUB_API_URL}/graphql',
            headers=headers,
            json={"query": query, "variables": variables},
            timeout=GITHUB_API_TIMEOUT,
        )
    except requests.exceptions.RequestException as e:
        raise GitHubAPIError(f'{operation} failed: {e}', operation) from e

    if response.status_code != 200:
        raise GitHubAPIError(
            f'{operation} failed with status {response.status_code}: {_error_message(response)}',
            operation,
            response.status_code,
        )

    try:
        payload = response.json()
    except ValueError as e:
        raise GitHubAPIError(
            f'{operation} failed: invalid JSON response: {e}', operation, response.status_code
        ) from e
    if not isinstance(payload, dict):
        raise GitHubAPIError(f'{operation} failed: unexpected response payload', operation, response.status_code)

    errors = payload.get('errors') or []
    if errors:
        messages = '; '.join(str(error.get('message', error)) for error in errors)
        raise GitHubAPIError(messages, operation, response.status_code)

    return payload.get('data') or {}


# =============================================================================
# Refs, trees and commits
# =============================================================================


def get_branch_sha(repository: str, branch: str, token: str) -> str:
    """Return the commit SHA a branch points to."""
    data = github_request('GET', f'/repos/{repository}/git/ref/heads/{branch}', token, 'get branch ref')
    return data['object']['sha']


def create_or_update_branch(repository: str, branch_name: str, base_sha: str, token: str) -> None:
    """
    Create ``branch_name`` at ``base_sha``, or force it there if it already exists.

    Reused update branches are reset to the base commit, discarding whatever
    was pushed to them before.
    """
    try:
        github_request(
            'POST',
            f'/repos/{repository}/git/refs',
            token,
            'create branch',
            json_body={'ref': f'refs/heads/{branch_name}', 'sha': base_sha},
        )
        logger.info(f'✅ Created branch: {branch_name}')
    except GitHubAPIError as e:
        if e.status_code != HTTP_UNPROCESSABLE_ENTITY:
            raise
        logger.info(f'Branch {branch_name} already exists, updating it...')
        github_request(
            'PATCH',
            f'/repos/{repository}/git/refs/heads/{branch_name}',
            token,
            'force update branch',
            json_body={'sha': base_sha, 'force': True},
        )


def create_commit(
    repository: str,
    branch_name: str,
    base_sha: str,
    message: str,
    files: Sequence[Tuple[str, bytes]],
    token: str,
) -> str:
    """
    Commit ``files`` on top of ``base_sha`` and point ``branch_name`` at the result.

    Args:
        repository (str): Repository in format 'owner/repo'
        branch_name (str): Branch to move to the new commit
        base_sha (str): Parent commit; its tree is the base of the new tree
        message (str): Commit message
        files: (repository-relative path, content) pairs
        token (str): GitHub token

    Returns:
        str: SHA of the new commit
    """
    base_tree = github_request('GET', f'/repos/{repository}/git/trees/{base_sha}', token, 'get base tree')

    tree_entries = []
    for path, content in files:
        blob = github_request(
            'POST',
            f'/repos/{repository}/git/blobs',
            token,
            'create blob',
            json_body={'content': base64.b64encode(content).decode('ascii'), 'encoding': 'base64'},
        )
        tree_entries.append({'path': path, 'mode': GIT_FILE_MODE, 'type': 'blob', 'sha': blob['sha']})

    new_tree = github_request(
        'POST',
        f'/repos/{repository}/git/trees',
        token,
        'create tree',
        json_body={'base_tree': base_tree['sha'], 'tree': tree_entries},
    )

    commit = github_request(
        'POST',
        f'/repos/{repository}/git/commits',
        token,
        'create commit',
        json_body={'message': message, 'tree': new_tree['sha'], 'parents': [base_sha]},
    )

    github_request(
        'PATCH',
        f'/repos/{repository}/git/refs/heads/{branch_name}',
        token,
        'update branch ref',
        json_body={'sha': commit['sha'], 'force': False},
    )

    return commit['sha']


# =============================================================================
# Pull requests
# =============================================================================


def list_open_pull_requests(repository: str, branch_name: str, token: str) -> List[Dict[str, Any]]:
    """List open PRs whose head is ``owner:branch_name``."""
    owner = repository.split('/')[0]
    return (
        github_request(
            'GET',
            f'/repos/{repository}/pulls',
            token,
            'list pull requests',
            params={'head': f'{owner}:{branch_name}', 'state': 'open'},
        )
        or []
    )


def check_existing_pr(repository: str, branch_name: str, expected_title: str, token: str) -> Optional[Dict[str, Any]]:
    """
    Find an open PR for ``branch_name`` whose title equals ``expected_title``.

    The title carries the target versions, so an open PR with another title
    is stale and does not count.

    Returns:
        Optional[Dict[str, Any]]: {'number', 'url'} of the matching PR, or None
    """
    try:
        existing_prs = list_open_pull_requests(repository, branch_name, token)
    except GitHubAPIError as e:
        if e.status_code == HTTP_NOT_FOUND:
            logger.debug(f'No existing PRs found for branch {branch_name}')
            return None
        logger.warning(f'Error checking for existing PR on {branch_name}: {e}')
        raise

    if existing_prs:
        existing_pr = existing_prs[0]
        if existing_pr.get('title') == expected_title:
            return {'number': existing_pr['number'], 'url': existing_pr['html_url']}

    return None


def set_labels(repository: str, issue_number: int, labels: List[str], token: str) -> None:
    github_request(
        'PUT',
        f'/repos/{repository}/issues/{issue_number}/labels',
        token,
        'set labels',
        json_body={'labels': labels},
    )


def request_reviewers_and_assignees(
    repository: str, pr_number: int, assignment: PRAssignmentConfig, token: str
) -> None:
    """Request reviewers and add assignees. Failures are logged, never raised."""
    if not assignment.has_reviewers and not assignment.has_assignees:
        return

    owner = repository.split('/')[0]

    try:
        if assignment.has_reviewers:
            github_request(
                'POST',
                f'/repos/{repository}/pulls/{pr_number}/requested_reviewers',
                token,
                'request reviewers',
                json_body={'reviewers': assignment.reviewers, 'team_reviewers': assignment.team_reviewers},
            )
            requested = assignment.reviewers + [f'@{owner}/{team}' for team in assignment.team_reviewers]
            logger.info(f'Requested reviewers: {", ".join(requested)}')

        if assignment.has_assignees:
            github_request(
                'POST',
                f'/repos/{repository}/issues/{pr_number}/assignees',
                token,
                'add assignees',
                json_body={'assignees': assignment.assignees},
            )
            logger.info(f'Added assignees: {", ".join(assignment.assignees)}')
    except GitHubAPIError as e:
        logger.warning(f'Failed to set reviewers/assignees for PR #{pr_number}: {e}')


def create_or_update_pr(
    repository: str,
    branch_name: str,
    base_branch: str,
    title: str,
    body: str,
    labels: List[str],
    token: str,
    assignment: Optional[PRAssignmentConfig] = None,
) -> Dict[str, Any]:
    """
    Update the open PR for ``branch_name`` or create one.

    Returns:
        Dict[str, Any]: {'number', 'url'} of the PR
    """
    existing_prs = list_open_pull_requests(repository, branch_name, token)

    if existing_prs:
        existing_pr = existing_prs[0]
        logger.info(f"Updating existing PR #{existing_pr['number']}")
        pr = github_request(
            'PATCH',
            f"/repos/{repository}/pulls/{existing_pr['number']}",
            token,
            'update pull request',
            json_body={'title': title, 'body': body},
        )
        action = 'Updated'
    else:
        pr = github_request(
            'POST',
            f'/repos/{repository}/pulls',
            token,
            'create pull request',
            json_body={'title': title, 'body': body, 'head': branch_name, 'base': base_branch},
        )
        action = 'Created'

    set_labels(repository, pr['number'], labels, token)
    logger.info(f"✅ {action} PR: {pr['html_url']}")

    if assignment is not None:
        request_reviewers_and_assignees(repository, pr['number'], assignment, token)

    return {'number': pr['number'], 'url': pr['html_url']}


# =============================================================================
# Auto-merge (GraphQL)
# =============================================================================

ENABLE_AUTO_MERGE_MUTATION = """
    mutation EnableAutoMerge($pullRequestId: ID!, $mergeMethod: PullRequestMergeMethod!) {
      enablePullRequestAutoMerge(input: {pullRequestId: $pullRequestId, mergeMethod: $mergeMethod}) {
        pullRequest {
          id
          number
          autoMergeRequest {
            enabledAt
          }
        }
      }
    }
    """

AUTO_MERGE_STATUS_QUERY = """
    query CheckAutoMerge($owner: String!, $repo: String!, $prNumber: Int!) {
      repository(owner: $owner, name: $repo) {
        pullRequest(number: $prNumber) {
          autoMergeRequest {
            enabledAt
          }
        }
      }
    }
    """


def get_pull_request_node_id(repository: str, pr_number: int, token: str) -> str:
    pr = github_request('GET', f'/repos/{repository}/pulls/{pr_number}', token, 'get pull request')
    if not isinstance(pr, dict) or not pr.get('node_id'):
        raise GitHubAPIError(f'get pull request failed: no node_id for PR #{pr_number}', 'get pull request')
    return pr['node_id']


def enable_pull_request_auto_merge(pull_request_id: str, merge_method: str, token: str) -> None:
    """Run the enablePullRequestAutoMerge mutation. ``merge_method`` is MERGE, SQUASH or REBASE."""
    graphql_request(
        ENABLE_AUTO_MERGE_MUTATION,
        {'pullRequestId': pull_request_id, 'mergeMethod': merge_method},
        token,
        'enable auto-merge',
    )


def get_auto_merge_request(repository: str, pr_number: int, token: str) -> Optional[Dict[str, Any]]:
    """Return the PR's autoMergeRequest object, None when auto-merge is off."""
    owner, repo = repository.split('/', 1)
    data = graphql_request(
        AUTO_MERGE_STATUS_QUERY,
        {'owner': owner, 'repo': repo, 'prNumber': pr_number},
        token,
        'check auto-merge',
    )
    return data['repository']['pullRequest']['autoMergeRequest']


# =============================================================================
# Releases and issues
# =============================================================================


def get_release_notes(repository: str, version: str, token: str) -> Optional[str]:
    """
    Fetch the body of the release tagged ``version``, trying with and without a 'v' prefix.

    Returns:
        Optional[str]: Release body, or None if no release was found
    """
    tags_to_try = [version, version[1:]] if version.startswith('v') else [version, f'v{version}']

    for tag in tags_to_try:
        try:
            release = github_request(
                'GET', f'/repos/{repository}/releases/tags/{tag}', token, 'get release by tag'
            )
            return release.get('body') or None
        except GitHubAPIError as e:
            logger.debug(f'Failed to fetch release notes for {repository}@{tag}: {e}')

    return None


def create_issue(repository: str, title: str, body: str, labels: List[str], token: str) -> Dict[str, Any]:
    issue = github_request(
        'POST',
        f'/repos/{repository}/issues',
        token,
        'create issue',
        json_body={'title': title, 'body': body, 'labels': labels},
    )
    return {'number': issue['number'], 'url': issue['html_url']}
