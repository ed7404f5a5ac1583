from collections.abc import Mapping

from app.anonymization.boundary import replace_whole


def deanonymize(text: str, mapping: Mapping[str, str] | None) -> str:
    """Put original values back in place of placeholders.

    Keys are processed longest first: a placeholder that is a textual prefix of
    another must not eat the longer one's remainder. Placeholders missing from
    *mapping* are left untouched.

    Only exact-match identifiers round-trip; pattern passes are lossy
    (e.g. "45 года" comes back as "45 лет").
    """
    if not text or not isinstance(mapping, Mapping):
        return text

    result = text
    for placeholder in sorted(mapping, key=len, reverse=True):
        result, _count = replace_whole(result, placeholder, mapping[placeholder])
    return result
