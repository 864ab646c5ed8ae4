"""Utility functions for the andtask record store."""

import re

UNTITLED_NOTE = "Untitled Note"

# Length of the display title shown for search hits
DISPLAY_TITLE_LENGTH = 50

# Upper bound for titles derived from note content
DERIVED_TITLE_MAX_LENGTH = 100

_HEADING_PREFIX = re.compile(r"^\s{0,3}#{1,6}\s+")


def derive_title(content: str, max_length: int = DERIVED_TITLE_MAX_LENGTH) -> str:
    """Derive a note title from its content.

    Uses the first non-blank line with any Markdown heading marker
    removed, cut to ``max_length`` characters.

    Examples:
        "# Groceries\\n- milk" -> "Groceries"
        "\\n\\n  plain first line" -> "plain first line"
        "" -> "Untitled Note"

    Args:
        content: The note body.
        max_length: Maximum length of the derived title.

    Returns:
        The derived title, or "Untitled Note" if the content has no text.
    """
    for line in (content or "").splitlines():
        stripped = _HEADING_PREFIX.sub("", line).strip()
        if stripped:
            return stripped[:max_length].rstrip()
    return UNTITLED_NOTE


def display_title(content: str, length: int = DISPLAY_TITLE_LENGTH) -> str:
    """Build the display title for a search hit.

    The first ``length`` characters of ``content``, with "..." appended
    only when the content is longer than ``length``.
    """
    if len(content) > length:
        return content[:length] + "..."
    return content


def escape_like_pattern(value: str) -> str:
    """Escape SQL LIKE wildcards to treat them as literals.

    Args:
        value: User input string that may contain LIKE wildcards

    Returns:
        String with '%', '_', and '\\' escaped for safe use in LIKE clauses

    Example:
        >>> escape_like_pattern("100% complete")
        '100\\% complete'
    """
    escape_table = str.maketrans(
        {
            "\\": "\\\\",  # Escape backslash first
            "%": "\\%",
            "_": "\\_",
        }
    )
    return value.translate(escape_table)
