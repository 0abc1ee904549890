from __future__ import annotations

import json

import pytest

from campus_connect.nlp.vocabulary import (
    SUBJECT_ALIASES,
    build_table,
    default_vocabulary,
    load_vocabulary,
    resolve,
)


def test_every_canonical_subject_resolves_to_itself() -> None:
    vocabulary = default_vocabulary()

    for label in vocabulary.subjects.labels:
        assert vocabulary.subjects.resolve(label) == label
    for label in vocabulary.departments.labels:
        assert vocabulary.departments.resolve(label) == label


def test_aliases_resolve_to_canonical_labels() -> None:
    vocabulary = default_vocabulary()

    assert vocabulary.subjects.resolve("anyone good at dsa?") == "Data Structures"
    assert vocabulary.subjects.resolve("need someone for cpp") == "C++"
    assert vocabulary.subjects.resolve("ML project") == "Machine Learning"
    assert vocabulary.departments.resolve("computer science folks") == "CSE"
    assert vocabulary.departments.resolve("mech students") == "Mechanical"


def test_short_aliases_only_match_whole_tokens() -> None:
    vocabulary = default_vocabulary()

    assert vocabulary.departments.resolve("struggling with thermodynamics") is None
    assert vocabulary.departments.resolve("fluid mechanics help") is None
    assert vocabulary.subjects.resolve("javascript closures") == "JavaScript"
    assert vocabulary.subjects.resolve("java streams") == "Java"


def test_first_declared_entry_wins() -> None:
    table = build_table("subjects", [("Web Development", ["web"]), ("Frontend Development", ["web ui"])])

    assert resolve("web ui work", table) == "Web Development"


def test_unknown_text_resolves_to_none() -> None:
    assert default_vocabulary().subjects.resolve("underwater basket weaving") is None


def test_load_vocabulary_overrides_one_table(tmp_path) -> None:
    path = tmp_path / "vocabulary.json"
    path.write_text(json.dumps({"subjects": {"Quantum Computing": ["qc", "qubits"]}}), encoding="utf-8")

    vocabulary = load_vocabulary(path)

    assert vocabulary.subjects.labels == ["Quantum Computing"]
    assert vocabulary.subjects.resolve("help with qubits") == "Quantum Computing"
    assert vocabulary.departments.resolve("cse") == "CSE"


def test_load_vocabulary_rejects_non_list_aliases(tmp_path) -> None:
    path = tmp_path / "vocabulary.json"
    path.write_text(json.dumps({"departments": {"CSE": "cse"}}), encoding="utf-8")

    with pytest.raises(ValueError):
        load_vocabulary(path)


def test_load_vocabulary_without_path_is_default() -> None:
    assert load_vocabulary(None).subjects.labels == [label for label, _ in SUBJECT_ALIASES]


def test_it_department_needs_capitals_or_a_department_phrase() -> None:
    departments = default_vocabulary().departments

    assert departments.resolve("Is it possible to get a Java tutor?") is None
    assert departments.resolve("I need help with it, python") is None
    assert departments.resolve("teammates from IT") == "IT"
    assert departments.resolve("any it dept seniors around?") == "IT"
    assert departments.resolve("information technology notes") == "IT"


def test_phrase_aliases_start_on_a_word_boundary() -> None:
    departments = default_vocabulary().departments

    assert departments.resolve("edit students list") is None
    assert departments.resolve("it students") == "IT"


def test_uppercase_short_aliases_from_json_keep_their_case(tmp_path) -> None:
    path = tmp_path / "vocabulary.json"
    path.write_text(json.dumps({"departments": {"ME": ["ME", "mechanical"]}}), encoding="utf-8")

    departments = load_vocabulary(path).departments

    assert departments.resolve("tell me more") is None
    assert departments.resolve("ME students") == "ME"
    assert departments.resolve("mechanical lab") == "ME"
