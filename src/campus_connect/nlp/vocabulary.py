from __future__ import annotations

import re
from dataclasses import dataclass
from functools import cached_property
from pathlib import Path
from typing import Any

from campus_connect.utils.io import read_json

# Aliases this short only match as whole tokens, so "ds" never fires inside
# "needs" and "mech" never fires inside "fluid mechanics".
SHORT_ALIAS_MAX_LENGTH = 4


def is_case_sensitive(alias: str) -> bool:
    """Short all-caps aliases such as ``IT`` only match when typed in capitals."""
    return alias.isupper() and len(alias) <= SHORT_ALIAS_MAX_LENGTH


@dataclass(frozen=True)
class VocabularyEntry:
    canonical: str
    aliases: tuple[str, ...]

    @cached_property
    def patterns(self) -> tuple[tuple[re.Pattern[str], bool], ...]:
        compiled = []
        for alias in self.aliases:
            exact = is_case_sensitive(alias)
            escaped = re.escape(alias if exact else alias.lower())
            if exact:
                escaped = rf"(?<![A-Za-z0-9]){escaped}(?![A-Za-z0-9])"
            elif len(alias) <= SHORT_ALIAS_MAX_LENGTH:
                escaped = rf"(?<![a-z0-9]){escaped}(?![a-z0-9])"
            else:
                escaped = rf"(?<![a-z0-9]){escaped}"
            compiled.append((re.compile(escaped), exact))
        return tuple(compiled)

    def matches(self, text: str) -> bool:
        lowered = text.lower()
        return any(pattern.search(text if exact else lowered) for pattern, exact in self.patterns)


@dataclass(frozen=True)
class VocabularyTable:
    name: str
    entries: tuple[VocabularyEntry, ...]

    def resolve(self, text: str) -> str | None:
        return resolve(text, self)

    @property
    def labels(self) -> list[str]:
        return [entry.canonical for entry in self.entries]

    def alias_words(self) -> set[str]:
        words: set[str] = set()
        for entry in self.entries:
            for alias in (entry.canonical, *entry.aliases):
                words.update(re.findall(r"[a-z]+", alias.lower()))
        return words


def resolve(text: str, table: VocabularyTable) -> str | None:
    """Return the canonical label of the first entry with an alias in ``text``.

    Entries are checked in declaration order and the first hit wins. There is
    no ranking by specificity, so overlapping aliases across entries resolve to
    whichever entry is declared first.
    """
    for entry in table.entries:
        if entry.matches(text):
            return entry.canonical
    return None


SUBJECT_ALIASES: list[tuple[str, list[str]]] = [
    ("Data Structures", ["data structures", "data structure", "dsa", "ds"]),
    ("Algorithms", ["algorithms", "algorithm", "algo"]),
    ("Python", ["python", "py"]),
    ("JavaScript", ["javascript", "js"]),
    ("Java", ["java"]),
    ("C++", ["c++", "cpp", "c plus plus"]),
    ("React", ["reactjs", "react.js", "react"]),
    ("Web Development", ["web development", "web dev", "web"]),
    ("Machine Learning", ["machine learning", "ml"]),
    ("AI", ["artificial intelligence", "ai"]),
    ("Database", ["databases", "database", "dbms", "sql"]),
    ("Operating Systems", ["operating systems", "operating system", "os"]),
    ("Computer Networks", ["computer networks", "networking", "networks", "cn"]),
    ("Embedded Systems", ["embedded systems", "embedded"]),
    ("UI/UX Design", ["ui/ux", "ui", "ux", "design"]),
    ("Frontend Development", ["frontend", "front end", "front-end"]),
    ("Backend Development", ["backend", "back end", "back-end"]),
    ("Full Stack Development", ["full stack", "fullstack", "full-stack"]),
    ("Digital Electronics", ["digital electronics", "digital"]),
    ("Statistics", ["statistics", "stats"]),
    ("Fluid Mechanics", ["fluid mechanics", "fluids"]),
    ("Thermodynamics", ["thermodynamics", "thermo"]),
]

DEPARTMENT_ALIASES: list[tuple[str, list[str]]] = [
    ("CSE", ["cse", "computer science"]),
    ("IT", ["IT", "information technology", "it dept", "it department", "it students", "it branch"]),
    ("ECE", ["ece", "electronics and communication", "electronics"]),
    ("EEE", ["eee", "electrical"]),
    ("Mechanical", ["mechanical", "mech"]),
]


def build_table(name: str, rows: list[tuple[str, list[str]]]) -> VocabularyTable:
    entries = []
    for canonical, aliases in rows:
        ordered = [alias if is_case_sensitive(alias) else alias.lower() for alias in aliases]
        # The canonical label always resolves to itself; listing it as an
        # alias keeps its case rule, so "IT" never matches the pronoun.
        if canonical not in ordered:
            ordered.insert(0, canonical.lower())
        entries.append(VocabularyEntry(canonical=canonical, aliases=tuple(dict.fromkeys(ordered))))
    return VocabularyTable(name=name, entries=tuple(entries))


@dataclass(frozen=True)
class Vocabulary:
    subjects: VocabularyTable
    departments: VocabularyTable


def default_vocabulary() -> Vocabulary:
    return Vocabulary(
        subjects=build_table("subjects", SUBJECT_ALIASES),
        departments=build_table("departments", DEPARTMENT_ALIASES),
    )


def load_vocabulary(path: str | Path | None = None) -> Vocabulary:
    """Load the vocabulary, optionally overriding either table from JSON.

    The file holds ``{"subjects": {label: [aliases]}, "departments": {...}}``;
    a missing key keeps the built-in table. Declaration order is preserved.
    """
    vocabulary = default_vocabulary()
    if not path:
        return vocabulary

    payload: dict[str, Any] = read_json(Path(path))
    subjects = vocabulary.subjects
    departments = vocabulary.departments
    if isinstance(payload.get("subjects"), dict):
        subjects = build_table("subjects", _rows_from_mapping(payload["subjects"]))
    if isinstance(payload.get("departments"), dict):
        departments = build_table("departments", _rows_from_mapping(payload["departments"]))
    return Vocabulary(subjects=subjects, departments=departments)


def _rows_from_mapping(mapping: dict[str, Any]) -> list[tuple[str, list[str]]]:
    rows: list[tuple[str, list[str]]] = []
    for label, aliases in mapping.items():
        if not isinstance(aliases, list):
            raise ValueError(f"Aliases for {label!r} must be a list of strings")
        rows.append((str(label), [str(alias) for alias in aliases]))
    return rows
