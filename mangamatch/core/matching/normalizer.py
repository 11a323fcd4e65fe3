"""Title normalization.

Two families of functions live here:

- ``normalize`` produces the canonical form used for equality and
  character-level metrics. It removes all whitespace, so its output cannot
  be split back into words.
- ``extract_meaningful_words`` and ``extract_match_tokens`` keep word
  boundaries and drop stop words. Anything that works on words (order,
  coverage, stemming, initialisms) must go through them.

The remaining helpers are the lighter passes used by the match pipeline's
direct and legacy stages.
"""

from __future__ import annotations

import re
import unicodedata

from mangamatch.core.models import NormalizedTitle, TitleRecord

# Applied once each, in order
IGNORABLE_PATTERNS: tuple[re.Pattern[str], ...] = tuple(
    re.compile(p, re.IGNORECASE)
    for p in (
        r"^\[.*?\]\s*",  # [Tag] prefix
        r"\s*\[.*?\]$",  # [Tag] suffix
        r"^\(.*?\)\s*",
        r"\s*\(.*?\)$",
        r"\s*-\s*raw$",
        r"\s*raw$",
        r"\s*scan$",
        r"\s*manga$",
        r"\s*comic$",
        r"\s*doujin(shi)?$",
        r"\s*anthology$",
        r"\s*collection$",
        r"\s*vol\.\s*\d+",
        r"\s*volume\s*\d+",
        r"\s*ch\.\s*\d+",
        r"\s*chapter\s*\d+",
        r"\s*oneshot$",
        r"\s*one[-\s]shot$",
    )
)

PUNCTUATION_MAP = {
    "‘": "'",
    "’": "'",
    "–": "-",
    "—": "-",
    "…": "...",
    "×": "x",
    "！": "!",
    "？": "?",
    "：": ":",
    "；": ";",
    "，": ",",
    "、": ",",
    "。": ".",
    "（": "(",
    "）": ")",
    "「": '"',
    "」": '"',
    "『": '"',
    "』": '"',
}
_PUNCTUATION_TABLE = str.maketrans(PUNCTUATION_MAP)

# Order matters: "wo" must expand before the bare "o" particle is dropped
ABBREVIATIONS: tuple[tuple[str, str], ...] = (
    ("vs", "versus"),
    ("&", "and"),
    ("w/", "with"),
    ("wo", "without"),
    ("no", "of"),
    ("wa", "the"),
    ("ga", ""),
    ("ni", "to"),
    ("o", ""),
    ("de", "in"),
    ("kara", "from"),
    ("made", "until"),
    ("re:", "re"),
    ("∞", "infinity"),
    ("♡", "love"),
    ("★", "star"),
    ("☆", "star"),
)
_ABBREVIATION_PATTERNS = tuple(
    (re.compile(rf"\b{re.escape(abbrev)}\b", re.IGNORECASE), expansion)
    for abbrev, expansion in ABBREVIATIONS
)

STOP_WORDS = frozenset(
    {
        "the", "a", "an", "and", "or", "but", "in", "on", "at", "to", "for", "of", "with", "by",
        "wa", "no", "ga", "wo", "ni", "de", "kara", "made", "da", "desu", "des",
        "manga", "comic", "doujin", "doujinshi", "anthology", "collection",
    }
)  # fmt: skip

# Season/volume-type words that do not identify a series on their own
SECONDARY_WORDS = frozenset(
    {
        "season", "seasons", "part", "parts", "pt", "volume", "vol", "chapter", "ch",
        "arc", "cour", "tome", "book", "edition", "series", "saison", "partie",
    }
)  # fmt: skip

ARTICLES = frozenset({"a", "an", "the"})

NUMBER_WORDS = {
    "zero": "0",
    "one": "1",
    "two": "2",
    "three": "3",
    "four": "4",
    "five": "5",
    "six": "6",
    "seven": "7",
    "eight": "8",
    "nine": "9",
    "ten": "10",
    "eleven": "11",
    "twelve": "12",
    "thirteen": "13",
    "fourteen": "14",
    "fifteen": "15",
    "sixteen": "16",
    "seventeen": "17",
    "eighteen": "18",
    "nineteen": "19",
    "twenty": "20",
}

CYRILLIC_TO_LATIN = {
    "о": "o", "О": "O", "а": "a", "А": "A", "е": "e", "Е": "E",
    "с": "c", "С": "C", "р": "p", "Р": "P", "к": "k", "К": "K",
    "м": "m", "М": "M", "н": "n", "Н": "N", "т": "t", "Т": "T",
    "х": "x", "Х": "X", "в": "v", "В": "V", "у": "u", "У": "U",
    "і": "i", "І": "I", "ј": "j", "Ј": "J",
    "ё": "yo", "Ё": "Yo", "ю": "yu", "Ю": "Yu", "я": "ya", "Я": "Ya",
    "ж": "zh", "Ж": "Zh", "ч": "ch", "Ч": "Ch", "ш": "sh", "Ш": "Sh",
    "щ": "shch", "Щ": "Shch", "ц": "ts", "Ц": "Ts", "ы": "y", "Ы": "Y",
    "э": "e", "Э": "E",
    "ь": "", "Ь": "", "ъ": "", "Ъ": "",
}  # fmt: skip
_CYRILLIC_TABLE = str.maketrans(CYRILLIC_TO_LATIN)

_FULL_WIDTH = re.compile("[\uff01-\uff5e]")
_COMBINING_MARKS = re.compile("[\u0300-\u036f]")
_CANONICAL_STRIP = re.compile(r"[^\w\s\-']")
_PUNCTUATION = re.compile(r"[^\w\s]")
_WHITESPACE = re.compile(r"\s+")
_INNER_PARENTHETICAL = re.compile(r"\s*\([^()]*\)\s*")
_MULTI_SPACE = re.compile(r"\s{2,}")
_SHORTHAND = re.compile(r"^(?:s|season|pt|part|vol|volume|ch|chapter|arc)\.?(\d+)$")
_ROMAN_NUMERAL = re.compile(
    r"^(?=[mdclxvi])m{0,4}(cm|cd|d?c{0,3})(xc|xl|l?x{0,3})(ix|iv|v?i{0,3})$",
    re.IGNORECASE,
)
_ROMAN_VALUES = {"i": 1, "v": 5, "x": 10, "l": 50, "c": 100, "d": 500, "m": 1000}


def strip_ignorable(text: str) -> str:
    """Remove tag brackets and low-signal suffixes (raw, scan, vol. N, ...)."""
    for pattern in IGNORABLE_PATTERNS:
        text = pattern.sub("", text, count=1)
    return text


def normalize(text: str | None) -> str:
    """Canonicalize a title into a single lowercase token run.

    Brackets and noise suffixes are stripped, diacritics removed, full-width
    and Japanese punctuation folded to ASCII, common abbreviations and
    particles expanded, then every separator is dropped so that spacing and
    hyphenation differences disappear.

    Args:
        text: Raw title text

    Returns:
        Canonical form, or "" for empty input
    """
    if not text:
        return ""

    normalized = strip_ignorable(text.strip())

    normalized = unicodedata.normalize("NFD", normalized)
    normalized = _FULL_WIDTH.sub(lambda m: chr(ord(m.group()) - 0xFEE0), normalized)
    normalized = _COMBINING_MARKS.sub("", normalized)

    normalized = normalized.translate(_PUNCTUATION_TABLE)

    for pattern, expansion in _ABBREVIATION_PATTERNS:
        normalized = pattern.sub(expansion, normalized)

    normalized = _CANONICAL_STRIP.sub(" ", normalized)
    normalized = normalized.replace("-", "")
    normalized = _WHITESPACE.sub("", normalized)

    return normalized.lower().strip()


def extract_meaningful_words(text: str | None, keep_numbers: bool = False) -> list[str]:
    """Split a title into lowercase words, dropping stop words.

    Args:
        text: Raw title text
        keep_numbers: Keep single-digit words, which are otherwise dropped
            along with every other one-character word

    Returns:
        Words in title order
    """
    if not text:
        return []

    normalized = strip_ignorable(text.strip().lower())
    normalized = _PUNCTUATION.sub(" ", normalized)

    words = []
    for word in normalized.split():
        if word in STOP_WORDS:
            continue
        if len(word) > 1 or (keep_numbers and word.isascii() and word.isdigit()):
            words.append(word)
    return words


def roman_to_int(numeral: str) -> int:
    total = 0
    previous = 0
    for char in reversed(numeral.lower()):
        value = _ROMAN_VALUES[char]
        if value < previous:
            total -= value
        else:
            total += value
            previous = value
    return total


def normalize_token(token: str) -> str:
    """Normalize a single word for overlap and initialism checks.

    "S2", "season2", "two", "02" and "II" all become "2".
    """
    token = token.strip().lower()
    if not token:
        return token

    shorthand = _SHORTHAND.match(token)
    if shorthand:
        token = shorthand.group(1)

    if token in NUMBER_WORDS:
        return NUMBER_WORDS[token]
    if token.isascii() and token.isdigit():
        return token.lstrip("0") or "0"
    if _ROMAN_NUMERAL.match(token):
        return str(roman_to_int(token))
    return token


def extract_match_tokens(text: str | None) -> list[str]:
    """Meaningful words passed through ``normalize_token``."""
    return [normalize_token(word) for word in extract_meaningful_words(text, keep_numbers=True)]


def is_primary_token(token: str) -> bool:
    return len(token) > 1 and token not in SECONDARY_WORDS


def normalize_string(text: str | None, case_sensitive: bool = False) -> str:
    """Replace punctuation with spaces and collapse whitespace."""
    if not text:
        return ""
    replaced = _WHITESPACE.sub(" ", _PUNCTUATION.sub(" ", text)).strip()
    return replaced if case_sensitive else replaced.lower()


def normalize_for_matching(text: str | None) -> str:
    """Lowercase and drop punctuation, keeping single spaces between words."""
    if not text:
        return ""
    normalized = text.lower().replace("-", "")
    normalized = _PUNCTUATION.sub("", normalized)
    normalized = _WHITESPACE.sub(" ", normalized)
    return normalized.replace("_", " ").strip()


def process_title(title: str) -> str:
    """Drop inner parentheticals and turn hyphens/underscores into spaces."""
    processed = _INNER_PARENTHETICAL.sub(" ", title)
    processed = (
        processed.replace("-", " ")
        .replace("‘", "'")
        .replace("’", "'")
        .replace("“", '"')
        .replace("”", '"')
        .replace("_", " ")
    )
    return _MULTI_SPACE.sub(" ", processed).strip()


def replace_special_chars(text: str) -> str:
    """Transliterate Cyrillic look-alike letters to Latin."""
    return text.translate(_CYRILLIC_TABLE)


def remove_punctuation(text: str) -> str:
    return _PUNCTUATION.sub("", text)


def is_difference_only_articles(title1: str, title2: str) -> bool:
    """Check whether two titles differ only by a/an/the.

    Titles with the same word count are never considered article-only
    differences.
    """
    words1 = normalize_for_matching(title1).split()
    words2 = normalize_for_matching(title2).split()

    if len(words1) == len(words2):
        return False

    stripped1 = [w for w in words1 if w not in ARTICLES]
    stripped2 = [w for w in words2 if w not in ARTICLES]
    return stripped1 == stripped2


def create_normalized_titles(record: TitleRecord) -> list[NormalizedTitle]:
    """Normalized english, romaji, native and synonym titles of a record."""
    normalized: list[NormalizedTitle] = []

    def push(title: str | None, source: str) -> None:
        if not title:
            return
        processed = process_title(title)
        normalized.append(
            NormalizedTitle(text=normalize_for_matching(processed), source=source, original=processed)
        )

    push(record.titles.english, "english")
    push(record.titles.romaji, "romaji")
    push(record.titles.native, "native")
    for index, synonym in enumerate(record.synonyms):
        push(synonym, f"synonym_{index}")

    return normalized
