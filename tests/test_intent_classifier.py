from __future__ import annotations

from campus_connect.data_models import ConversationContext, Intent
from campus_connect.nlp.intent import IntentClassifier
from campus_connect.nlp.vocabulary import default_vocabulary


def test_greetings_and_thanks_carry_no_slots() -> None:
    clf = IntentClassifier()

    for text in ["hey", "Hello!", "hi there, I need a Python tutor in CSE"]:
        result = clf.classify(text)
        assert result.intent == Intent.GREETING
        assert result.subject is None and result.department is None

    for text in ["thanks", "Thank you so much for the DSA help", "thx"]:
        result = clf.classify(text)
        assert result.intent == Intent.THANKS
        assert result.subject is None and result.department is None


def test_greeting_needs_a_whole_word() -> None:
    result = IntentClassifier().classify("history tutor please")

    assert result.intent == Intent.FIND_TUTOR


def test_help_request_with_subject() -> None:
    result = IntentClassifier().classify("I'm struggling with Data Structures")

    assert result.intent == Intent.HELP_REQUEST
    assert result.subject == "Data Structures"
    assert result.department is None


def test_keyword_groups_and_slots() -> None:
    clf = IntentClassifier()

    become = clf.classify("I can teach thermodynamics to mechanical students")
    assert become.intent == Intent.BECOME_TUTOR
    assert become.subject == "Thermodynamics"
    assert become.department == "Mechanical"

    teammate = clf.classify("Find CSE teammates who know React")
    assert teammate.intent == Intent.FIND_TEAMMATE
    assert teammate.subject == "React"
    assert teammate.department == "CSE"

    tutor = clf.classify("Can you find a tutor for machine learning?")
    assert tutor.intent == Intent.FIND_TUTOR
    assert tutor.subject == "Machine Learning"


def test_help_keywords_win_over_tutor_keywords() -> None:
    result = IntentClassifier().classify("I need help, looking for a tutor for Python")

    assert result.intent == Intent.HELP_REQUEST
    assert result.subject == "Python"


def test_team_and_tutor_words_are_word_bounded() -> None:
    clf = IntentClassifier()

    assert clf.classify("any team for the robotics contest?").intent == Intent.FIND_TEAMMATE
    assert clf.classify("operating systems tutor").intent == Intent.FIND_TUTOR
    assert clf.classify("I love steam engines and more").intent == Intent.GENERIC_QUERY


def test_exact_canonical_subject_alone_means_find_tutor() -> None:
    clf = IntentClassifier()

    for label in default_vocabulary().subjects.labels:
        result = clf.classify(label)
        assert result.intent == Intent.FIND_TUTOR
        assert result.subject == label


def test_generic_and_unknown_fallbacks() -> None:
    clf = IntentClassifier()

    generic = clf.classify("what's the weather like today")
    assert generic.intent == Intent.GENERIC_QUERY
    assert generic.raw_query == "what's the weather like today"

    assert clf.classify("ok").intent == Intent.UNKNOWN
    assert clf.classify("   ").intent == Intent.UNKNOWN
    assert clf.classify("").intent == Intent.UNKNOWN


def test_department_only_is_generic_with_department_slot() -> None:
    result = IntentClassifier().classify("I am from ECE")

    assert result.intent == Intent.GENERIC_QUERY
    assert result.department == "ECE"


def test_min_query_length_is_configurable() -> None:
    assert IntentClassifier(min_query_length=10).classify("sounds good").intent == Intent.GENERIC_QUERY
    assert IntentClassifier(min_query_length=20).classify("sounds good").intent == Intent.UNKNOWN


def test_follow_up_inherits_intent_and_slots() -> None:
    clf = IntentClassifier()
    context = ConversationContext()
    context.remember(clf.classify("find a tutor for python in CSE"))

    result = clf.classify("what about java", context)

    assert result.intent == Intent.FIND_TUTOR
    assert result.subject == "Java"
    assert result.department == "CSE"


def test_follow_up_for_teammates_keeps_the_teammate_intent() -> None:
    clf = IntentClassifier()
    context = ConversationContext()
    context.remember(clf.classify("looking for teammates who know react"))

    result = clf.classify("and ECE?", context)

    assert result.intent == Intent.FIND_TEAMMATE
    assert result.subject == "React"
    assert result.department == "ECE"


def test_follow_up_cue_without_context_falls_back() -> None:
    result = IntentClassifier().classify("what about java")

    assert result.intent == Intent.FIND_TUTOR
    assert result.subject == "Java"
    assert result.department is None


def test_classification_is_deterministic() -> None:
    clf = IntentClassifier()
    text = "need help with DSA in CSE"

    assert clf.classify(text) == clf.classify(text)
    assert clf.classify(text).to_dict() == {
        "intent": "help_request",
        "subject": "Data Structures",
        "department": "CSE",
        "raw_query": None,
    }


def test_pronoun_it_does_not_set_a_department() -> None:
    clf = IntentClassifier()

    result = clf.classify("Is it possible to get a Java tutor?")
    assert result.intent == Intent.FIND_TUTOR
    assert result.subject == "Java"
    assert result.department is None

    assert clf.classify("I need help with it, python").department is None
    assert clf.classify("find a python tutor in IT").department == "IT"


def test_greeting_and_thanks_ignore_conversation_history() -> None:
    clf = IntentClassifier()
    context = ConversationContext(
        last_intent=Intent.FIND_TUTOR,
        last_subject="Python",
        last_department="CSE",
    )

    for text, intent in [
        ("hey", Intent.GREETING),
        ("hi, what about java in ECE", Intent.GREETING),
        ("thanks for the python tips", Intent.THANKS),
    ]:
        result = clf.classify(text, context)
        assert result.intent == intent
        assert result.subject is None and result.department is None
