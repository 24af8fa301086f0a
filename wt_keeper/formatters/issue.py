"""Doctor issue and fix-result formatting utilities."""

from wt_keeper.constants import FIX_DONE_TEXT, SYMBOL_BULLET, SYMBOL_FAILED, SYMBOL_OK
from wt_keeper.models.issue import Issue


def format_issue(issue: Issue) -> str:
    """
    Format an issue as a bullet line.

    Example:
        "  • feature-x: path no longer exists: /src/feature-x"
    """
    return f"  {SYMBOL_BULLET} {issue.key}: {issue.description}"


def format_fix_success(issue: Issue, detail: str = "") -> str:
    """
    Format the line printed after a fix was applied.

    Args:
        issue: The fixed issue
        detail: Optional extra information, e.g. "updated repo path"

    Returns:
        Line such as '  ✓ Reassigned ID for "feature-x" (3 -> 7)'
    """
    line = f'  {SYMBOL_OK} {FIX_DONE_TEXT[issue.fix_action]} "{issue.key}"'
    if detail:
        line += f" ({detail})"
    return line


def format_fix_failure(issue: Issue, error: object) -> str:
    """Format the line printed when a fix could not be applied."""
    return f'  {SYMBOL_FAILED} Failed to fix "{issue.key}": {error}'


def format_fix_totals(fixed: int, failed: int) -> str:
    """
    Format the closing line of a fix run.

    Example:
        "Fixed 3 issues, 1 failed."
    """
    if failed:
        return f"Fixed {fixed} issues, {failed} failed."
    return f"Fixed {fixed} issues."
