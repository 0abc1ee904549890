from __future__ import annotations

import json

import pytest

from campus_connect.config import EVAL_DATA_DIR
from campus_connect.evaluation.benchmark import IntentBenchmarkRunner
from campus_connect.evaluation.metrics import classification_metrics, slot_accuracy


def test_slot_accuracy_treats_missing_slots_as_values() -> None:
    assert slot_accuracy(["Python", None, "Java"], ["Python", None, None]) == pytest.approx(2 / 3)
    assert slot_accuracy([], []) == 0.0
    with pytest.raises(ValueError):
        slot_accuracy(["Python"], [])


def test_classification_metrics_perfect_run() -> None:
    metrics = classification_metrics(["greeting", "find_tutor"], ["greeting", "find_tutor"])

    assert metrics["accuracy"] == 1.0
    assert metrics["f1_macro"] == 1.0


def test_benchmark_reports_and_records_misses(tmp_path) -> None:
    gold = tmp_path / "gold.json"
    gold.write_text(
        json.dumps(
            [
                {"query": "hey", "intent": "greeting"},
                {"query": "I need help with Python", "intent": "help_request", "subject": "Python"},
                {"query": "what about java", "previous": ["find a tutor for python in CSE"],
                 "intent": "find_tutor", "subject": "Java", "department": "CSE"},
                {"query": "python", "intent": "become_tutor", "subject": "Python"},
            ]
        ),
        encoding="utf-8",
    )
    out = tmp_path / "reports" / "intent_report.json"

    report = IntentBenchmarkRunner().run(gold_path=gold, output_path=out)

    assert report["total"] == 4
    assert report["intent"]["accuracy"] == pytest.approx(0.75)
    assert report["slots"]["subject_accuracy"] == 1.0
    assert report["slots"]["department_accuracy"] == 1.0
    assert [miss["query"] for miss in report["misses"]] == ["python"]
    assert json.loads(out.read_text(encoding="utf-8"))["total"] == 4


def test_shipped_gold_set_is_fully_correct(tmp_path) -> None:
    report = IntentBenchmarkRunner().run(
        gold_path=EVAL_DATA_DIR / "intent_gold.json",
        output_path=tmp_path / "report.json",
    )

    assert report["misses"] == []
    assert report["intent"]["accuracy"] == 1.0
