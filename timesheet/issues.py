from __future__ import annotations

import re

from .errors import InvalidIssueError

_NAME = r"[A-Za-z0-9_.-]+"

# https://github.com/<org>/<repo>/issues/<n>
_ISSUE_URL_RE = re.compile(
    rf"^https?://(?:www\.)?github\.com/(?P<org>{_NAME})/(?P<repo>{_NAME})/issues/(?P<number>\d+)/?(?:[?#].*)?$"
)
# <org>/<repo>#<n>
_ISSUE_SHORTHAND_RE = re.compile(rf"^(?P<org>{_NAME})/(?P<repo>{_NAME})#(?P<number>\d+)$")


def parse_issue(issue: str) -> str:
    """Validate an issue reference and return its lower-cased project label."""
    if not isinstance(issue, str):
        raise InvalidIssueError(str(issue))

    candidate = issue.strip()
    for pattern in (_ISSUE_URL_RE, _ISSUE_SHORTHAND_RE):
        match = pattern.match(candidate)
        if match is None:
            continue
        # Issue numbers start at 1; "." and ".." are not repository names.
        if int(match["number"]) <= 0 or match["repo"] in (".", ".."):
            break
        return match["repo"].lower()

    raise InvalidIssueError(issue)


def is_valid_issue(issue: str) -> bool:
    try:
        parse_issue(issue)
    except InvalidIssueError:
        return False
    return True
