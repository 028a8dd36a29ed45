from __future__ import annotations

import re
import unicodedata
from dataclasses import dataclass

ARABIC_SCRIPT = re.compile(
    "[\u0600-\u06FF\u0750-\u077F\u08A0-\u08FF\uFB50-\uFDFF\uFE70-\uFEFF]"
)
ARABIC_DIACRITICS = re.compile("[\u064B-\u065F\u0670\u06D6-\u06ED]")
LATIN_SUFFIXES = re.compile(r"\b(jr|sr|ii|iii|iv)\b")
PUNCTUATION = re.compile(r"[^\w\s]")
WHITESPACE = re.compile(r"\s+")

# Persian and Arabic letter variants folded onto one canonical form.
PERSIAN_ARABIC_NORMALIZATIONS = {
    "\u06A9": "\u0643",  # keheh -> kaf
    "\u06CC": "\u064A",  # farsi yeh -> yeh
    "\u0621": "",  # lone hamza
    "\u0623": "\u0627",  # alef with hamza above
    "\u0625": "\u0627",  # alef with hamza below
    "\u0622": "\u0627",  # alef with madda
    "\u0629": "\u0647",  # teh marbuta -> heh
    "\u06C0": "\u0647",  # heh with yeh above -> heh
    "\u0624": "\u0648",  # waw with hamza -> waw
    "\u0626": "\u064A",  # yeh with hamza -> yeh
    "\u200C": " ",  # zero-width non-joiner
    "\u200D": "",  # zero-width joiner
}
_PERSIAN_ARABIC_TABLE = str.maketrans(PERSIAN_ARABIC_NORMALIZATIONS)


@dataclass(frozen=True)
class NameParts:
    first: str
    middle: str
    last: str
    full: str


def has_arabic_script(value: str) -> bool:
    return ARABIC_SCRIPT.search(value) is not None


def _normalize_persian_arabic(value: str) -> str:
    value = ARABIC_DIACRITICS.sub("", value)
    return value.translate(_PERSIAN_ARABIC_TABLE)


def _normalize_latin(value: str) -> str:
    decomposed = unicodedata.normalize("NFD", value)
    value = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    value = PUNCTUATION.sub("", value)
    return LATIN_SUFFIXES.sub("", value)


def _collapse(value: str) -> str:
    return WHITESPACE.sub(" ", value).strip()


def normalize_name(name: str) -> str:
    """Script-aware canonical form of a name, used for every comparison.

    Persian/Arabic text loses its diacritics and has letter variants unified;
    Latin text loses accents, punctuation and generational suffixes. Never
    raises: empty or junk input yields an empty string.
    """
    if not name:
        return ""
    value = name.lower().strip()
    if has_arabic_script(value):
        value = _collapse(_normalize_persian_arabic(value))
        if has_arabic_script(value):
            return value
        # every Arabic code point was dropped; finish as Latin text
    return _collapse(_normalize_latin(value))


def extract_name_parts(name: str) -> NameParts:
    full = normalize_name(name)
    tokens = [token for token in full.split(" ") if token]
    if not tokens:
        return NameParts(first="", middle="", last="", full=full)
    return NameParts(
        first=tokens[0],
        middle=" ".join(tokens[1:-1]),
        last=tokens[-1],
        full=full,
    )
