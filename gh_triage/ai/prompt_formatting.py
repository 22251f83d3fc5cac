"""Helpers shared by prompt builders."""

from ..store.models import Comment, Issue

BODY_CHARS = 2000


def truncate(text: str, limit: int = BODY_CHARS) -> str:
    return text if len(text) <= limit else text[:limit]


def labels_suffix(issue: Issue) -> str:
    return f" [{', '.join(issue.labels)}]" if issue.labels else ""


def format_comments_for_prompt(
    comments: list[Comment],
    max_comments: int = 10,
    max_chars_per_comment: int = 500,
    max_total_chars: int = 3000,
) -> str:
    """Render the most recent comments as one line each.

    Args:
        comments: Comments in chronological order
        max_comments: Keep only this many of the latest comments
        max_chars_per_comment: Truncate each body to this length
        max_total_chars: Stop adding lines once this budget is reached

    Returns:
        A block starting with a header line, or '' when there are no comments
    """
    if not comments:
        return ""

    lines = ["Comments (most recent):"]
    total = len(lines[0])

    for comment in comments[-max_comments:]:
        body = comment.body
        if len(body) > max_chars_per_comment:
            body = body[:max_chars_per_comment] + "..."
        one_line = " ".join(body.split())
        line = f"@{comment.author} ({comment.created_at.date().isoformat()}): {one_line}"

        if total + len(line) + 1 > max_total_chars:
            break
        lines.append(line)
        total += len(line) + 1

    return "\n".join(lines)


def format_digest_line(issue: Issue) -> str:
    """Single-line compact form used for knowledge bases."""
    if issue.digest is None:
        return f"#{issue.number} {issue.title}"
    d = issue.digest
    return (
        f"#{issue.number} [{d.category}] {d.affected_area} | {d.summary} "
        f"| kw: {', '.join(d.keywords)}"
    )
