from __future__ import annotations

from campus_connect.nlp.query_normalizer import QueryNormalizer
from campus_connect.nlp.vocabulary import build_table, default_vocabulary, Vocabulary


def test_query_normalizer_expands_shortcuts() -> None:
    normalizer = QueryNormalizer()
    normalized = normalizer.normalize("need a tutr for dsa plz")

    assert normalized.applied is True
    assert normalized.corrected == "need a tutor for dsa please"
    assert {"from": "tutr", "to": "tutor"} in normalized.changes


def test_query_normalizer_keeps_case_of_replaced_tokens() -> None:
    normalized = QueryNormalizer().normalize("Tutr needed")

    assert normalized.corrected.startswith("Tutor")


def test_query_normalizer_leaves_domain_terms_alone() -> None:
    normalized = QueryNormalizer().normalize("hackathon teammates")

    assert normalized.applied is False
    assert normalized.corrected == "hackathon teammates"
    assert normalized.changes == []


def test_query_normalizer_keeps_symbol_subjects_together() -> None:
    normalizer = QueryNormalizer()

    assert normalizer.normalize("c++ tutor").corrected == "c++ tutor"
    assert normalizer.normalize("ui/ux mentor").corrected == "ui/ux mentor"


def test_query_normalizer_handles_blank_input() -> None:
    normalized = QueryNormalizer().normalize("   ")

    assert normalized.applied is False
    assert normalized.changes == []


def test_vocabulary_words_are_known_terms() -> None:
    vocabulary = Vocabulary(
        subjects=build_table("subjects", [("Kubernetes", ["kubernetes", "k8s"])]),
        departments=default_vocabulary().departments,
    )
    normalizer = QueryNormalizer(vocabulary)

    assert "kubernetes" in normalizer.known_terms
    assert normalizer.normalize("kubernetes").applied is False
