from __future__ import annotations

import re
from dataclasses import asdict, dataclass
from typing import Iterable

from rapidfuzz import fuzz, process
from spellchecker import SpellChecker

from campus_connect.nlp.vocabulary import Vocabulary, default_vocabulary

_TOKEN_RE = re.compile(r"[A-Za-z]+(?:'[A-Za-z]+)?|\d+|[^\w\s]")
_WORD_RE = re.compile(r"^[A-Za-z]+(?:'[A-Za-z]+)?$")

# Punctuation that attaches to the token before it, and to the token after it.
_ATTACH_LEFT = {".", ",", "?", "!", ":", ";", ")", "]", "}", "+", "/"}
_ATTACH_RIGHT = {"(", "[", "{", "/"}


@dataclass
class NormalizedQuery:
    original: str
    corrected: str
    applied: bool
    changes: list[dict[str, str]]

    def to_dict(self) -> dict[str, str | bool | list[dict[str, str]]]:
        return asdict(self)


class QueryNormalizer:
    """Repairs chat shorthand and typos so a second classification pass can succeed.

    Shorthand is expanded from a fixed table. Any other unknown word is snapped
    to the closest campus term (subjects, departments, intent keywords) and
    failing that to the spellchecker's suggestion; either candidate must be at
    least ``MIN_SIMILARITY`` similar to the original.
    """

    MIN_SIMILARITY = 80

    SHORTCUTS = {
        "plz": "please",
        "pls": "please",
        "u": "you",
        "ur": "your",
        "r": "are",
        "dept": "department",
        "prof": "professor",
        "sem": "semester",
        "tutr": "tutor",
        "tuter": "tutor",
        "teamate": "teammate",
        "teamates": "teammates",
        "hackthon": "hackathon",
        "colab": "collaborate",
        "collab": "collaborate",
    }

    DOMAIN_TERMS = {
        "tutor",
        "tutors",
        "tutoring",
        "teammate",
        "teammates",
        "hackathon",
        "hackathons",
        "collaborate",
        "project",
        "request",
        "struggling",
        "semester",
        "exam",
        "department",
        "reactjs",
        "dbms",
        "dsa",
    }

    def __init__(self, vocabulary: Vocabulary | None = None) -> None:
        self.spellchecker = SpellChecker(distance=2)
        self.known_terms: set[str] = set()
        self.learn(self.DOMAIN_TERMS)
        self.bootstrap_from_vocabulary(vocabulary or default_vocabulary())

    def learn(self, words: Iterable[str]) -> None:
        fresh = {word.lower() for word in words} - self.known_terms
        if fresh:
            self.known_terms.update(fresh)
            self.spellchecker.word_frequency.load_words(fresh)

    def bootstrap_from_vocabulary(self, vocabulary: Vocabulary) -> None:
        words = vocabulary.subjects.alias_words() | vocabulary.departments.alias_words()
        # One- and two-letter fragments would pull every short typo towards them.
        self.learn(word for word in words if len(word) > 2)

    def normalize(self, query: str) -> NormalizedQuery:
        original = " ".join(query.split())
        if not original:
            return NormalizedQuery(original=query, corrected=query, applied=False, changes=[])

        fixed_tokens: list[str] = []
        changes: list[dict[str, str]] = []
        for token in _TOKEN_RE.findall(original):
            fixed = self._fix_token(token)
            if fixed != token:
                changes.append({"from": token, "to": fixed})
            fixed_tokens.append(fixed)

        corrected = _detokenize(fixed_tokens)
        return NormalizedQuery(
            original=original,
            corrected=corrected,
            applied=corrected.lower() != original.lower(),
            changes=changes,
        )

    def _fix_token(self, token: str) -> str:
        if not _WORD_RE.match(token):
            return token

        lowered = token.lower()
        if lowered in self.SHORTCUTS:
            return _match_case(token, self.SHORTCUTS[lowered])
        if len(lowered) <= 2 or lowered in self.known_terms or lowered in self.spellchecker:
            return token

        candidate = self._closest_term(lowered) or self.spellchecker.correction(lowered)
        if candidate and candidate != lowered and fuzz.ratio(lowered, candidate) >= self.MIN_SIMILARITY:
            return _match_case(token, candidate)
        return token

    def _closest_term(self, lowered: str) -> str | None:
        match = process.extractOne(
            lowered,
            sorted(self.known_terms),
            scorer=fuzz.ratio,
            score_cutoff=self.MIN_SIMILARITY,
        )
        return match[0] if match else None


def _detokenize(tokens: list[str]) -> str:
    text = ""
    for token in tokens:
        if text and token not in _ATTACH_LEFT and text[-1] not in _ATTACH_RIGHT:
            text += " "
        text += token
    return text


def _match_case(source: str, replacement: str) -> str:
    if source.isupper():
        return replacement.upper()
    if source.istitle():
        return replacement.title()
    return replacement
