"""Terminal-safe rendering of untrusted event content.

Event content is authored by strangers and goes straight to a terminal,
so control characters (escape sequences, bells, backspaces) must never
reach it. Whitespace is kept even where it is also a control character.
"""

import unicodedata

REPLACEMENT_CHARACTER = "\ufffd"


def is_control(char: str) -> bool:
    """Whether a character is in the Unicode control category (Cc)."""
    return unicodedata.category(char) == "Cc"


# str.isspace() also accepts these information separators, which are not
# Unicode White_Space
INFORMATION_SEPARATORS = frozenset("\x1c\x1d\x1e\x1f")


def is_whitespace(char: str) -> bool:
    """Whether a character has the Unicode White_Space property."""
    return char.isspace() and char not in INFORMATION_SEPARATORS


def sanitize_content(text: str) -> str:
    """Replace non-whitespace control characters with U+FFFD.

    Pure and idempotent: sanitize_content(sanitize_content(x)) equals
    sanitize_content(x).

    Args:
        text: Arbitrary event content

    Returns:
        Text safe to write to a terminal

    Example:
        >>> sanitize_content("a\\tb\\nc")
        'a\\tb\\nc'
    """
    return "".join(
        char if is_whitespace(char) or not is_control(char) else REPLACEMENT_CHARACTER
        for char in text
    )


def normalize_newlines(text: str, line_ending: str = "\n") -> str:
    """Rewrite line feeds as the active line ending.

    In raw mode the terminal does not return the carriage on "\\n", so
    multi-line content must use "\\r\\n" to stay readable.
    """
    if line_ending == "\n":
        return text
    return text.replace("\n", line_ending)
