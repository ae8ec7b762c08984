"""
Slug and category path normalization.

Provider labels arrive in Cyrillic or Latin script with arbitrary casing and
punctuation; everything that is compared or stored as a slug goes through
``normalize_slug`` first.
"""
import re
from collections.abc import Mapping
from typing import Optional

# Bulgarian Cyrillic to Latin (streamlined system)
CYRILLIC_TO_LATIN: Mapping[str, str] = {
    "а": "a", "б": "b", "в": "v", "г": "g", "д": "d", "е": "e", "ж": "zh",
    "з": "z", "и": "i", "й": "y", "к": "k", "л": "l", "м": "m", "н": "n",
    "о": "o", "п": "p", "р": "r", "с": "s", "т": "t", "у": "u", "ф": "f",
    "х": "h", "ц": "ts", "ч": "ch", "ш": "sh", "щ": "sht", "ъ": "a", "ь": "y",
    "ю": "yu", "я": "ya",
    "А": "A", "Б": "B", "В": "V", "Г": "G", "Д": "D", "Е": "E", "Ж": "Zh",
    "З": "Z", "И": "I", "Й": "Y", "К": "K", "Л": "L", "М": "M", "Н": "N",
    "О": "O", "П": "P", "Р": "R", "С": "S", "Т": "T", "У": "U", "Ф": "F",
    "Х": "H", "Ц": "Ts", "Ч": "Ch", "Ш": "Sh", "Щ": "Sht", "Ъ": "A", "Ь": "Y",
    "Ю": "Yu", "Я": "Ya",
}

# Keywords that tell sibling categories with the same base slug apart
DISCRIMINATOR_KEYWORDS: tuple[tuple[str, str], ...] = (
    ("ip", "ip"),
    ("аналогов", "analog"),
    ("hd", "hd"),
    ("wifi", "wifi"),
    ("безжичн", "wireless"),
    ("куполн", "dome"),
    ("булет", "bullet"),
    ("вътрешн", "indoor"),
    ("външн", "outdoor"),
    ("nvr", "nvr"),
    ("dvr", "dvr"),
)

_NON_SLUG_CHARS = re.compile(r"[^a-z0-9]+")
_WORD_SEPARATOR = re.compile(r"\s+")


def transliterate(text: Optional[str], table: Mapping[str, str] = CYRILLIC_TO_LATIN) -> str:
    """Replace every mapped character; unmapped characters pass through"""
    if not text:
        return ""
    return "".join(table.get(char, char) for char in text)


def normalize_slug(label: Optional[str], table: Mapping[str, str] = CYRILLIC_TO_LATIN) -> str:
    """
    Convert a human label into a path-safe slug.

    Transliterates, lower-cases, collapses every run of characters outside
    ``[a-z0-9]`` into one hyphen and trims hyphens from both ends. Applying it
    to its own output returns the same string.

    Args:
        label: Display name or provider slug, possibly None
        table: Transliteration table

    Returns:
        Normalized slug, empty string for empty input
    """
    if not label:
        return ""
    latin = transliterate(label, table).lower()
    return _NON_SLUG_CHARS.sub("-", latin).strip("-")


def build_path(*levels: Optional[str]) -> Optional[str]:
    """
    Join normalized levels with "/", skipping absent ones.

    A present level that normalizes to nothing has no path of its own, so
    the whole path is unknown rather than one level shorter.

    Returns:
        The path, or None when no level is present or a level is unusable
    """
    parts = []
    for level in levels:
        if not level:
            continue
        part = normalize_slug(level)
        if not part:
            return None
        parts.append(part)
    if not parts:
        return None
    return "/".join(parts)


def normalize_dictionary_value(value: Optional[str]) -> str:
    """Case-fold and collapse whitespace for dictionary comparisons"""
    if not value:
        return ""
    return " ".join(value.split()).casefold()


def extract_discriminator(label: Optional[str]) -> str:
    """
    Pick a short token that distinguishes a category from same-named siblings.

    Known keywords win; otherwise the first four characters of the first word.
    """
    if not label:
        return ""

    lowered = label.lower()
    for keyword, token in DISCRIMINATOR_KEYWORDS:
        if keyword in lowered:
            return token

    words = _WORD_SEPARATOR.split(label.strip())
    first_word = normalize_slug(words[0]) if words else ""
    return first_word[:4]


__all__ = [
    "CYRILLIC_TO_LATIN",
    "transliterate",
    "normalize_slug",
    "build_path",
    "extract_discriminator",
    "normalize_dictionary_value",
]
