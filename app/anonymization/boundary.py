"""Letter-boundary aware replacement shared by the anonymizer and de-anonymizer.

``\\b`` is not usable here: names are matched inside Cyrillic text, and a match
is only valid when neither neighbouring character is a letter. ``[^\\W\\d_]``
is the Unicode "letter" class (word characters minus digits and underscore),
so Latin, Cyrillic (including ``ё``) and any other script behave the same.
"""

import re

_LETTER = r"[^\W\d_]"


def boundary_pattern(search: str) -> re.Pattern[str]:
    """Compile a pattern matching *search* only where it is not glued to letters."""
    return re.compile(rf"(?<!{_LETTER}){re.escape(search)}(?!{_LETTER})")


def replace_whole(text: str, search: str, replacement: str) -> tuple[str, int]:
    """Replace every letter-bounded occurrence of *search* in *text*.

    Returns:
        (new_text, number_of_replacements). An empty *search* is a no-op.
    """
    if not search or not text:
        return text, 0
    return boundary_pattern(search).subn(lambda _match: replacement, text)
