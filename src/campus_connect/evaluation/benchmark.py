from __future__ import annotations

import statistics
import time
from pathlib import Path

from campus_connect.data_models import ConversationContext
from campus_connect.evaluation.metrics import classification_metrics, slot_accuracy
from campus_connect.nlp.intent import IntentClassifier
from campus_connect.utils.io import read_json, write_json


class IntentBenchmarkRunner:
    """Scores the classifier against a gold file of labelled utterances.

    Each gold row has ``query`` and ``intent`` and may carry ``subject`` and
    ``department``. A row may also give ``previous`` turns, which are
    classified first so follow-up questions see the right context.
    """

    def __init__(self, classifier: IntentClassifier | None = None) -> None:
        self.classifier = classifier or IntentClassifier()

    def run(self, gold_path: Path, output_path: Path) -> dict:
        rows = read_json(gold_path)

        intent_true: list[str] = []
        intent_pred: list[str] = []
        subject_true: list[str | None] = []
        subject_pred: list[str | None] = []
        department_true: list[str | None] = []
        department_pred: list[str | None] = []
        latencies: list[float] = []
        misses: list[dict] = []

        for row in rows:
            context = ConversationContext()
            for turn in row.get("previous", []):
                context.remember(self.classifier.classify(turn, context))

            started = time.perf_counter()
            result = self.classifier.classify(row["query"], context)
            latencies.append((time.perf_counter() - started) * 1000)

            intent_true.append(row["intent"])
            intent_pred.append(result.intent.value)
            subject_true.append(row.get("subject"))
            subject_pred.append(result.subject)
            department_true.append(row.get("department"))
            department_pred.append(result.department)

            if (
                result.intent.value != row["intent"]
                or (row.get("subject") or None) != result.subject
                or (row.get("department") or None) != result.department
            ):
                misses.append(
                    {
                        "query": row["query"],
                        "expected": {
                            "intent": row["intent"],
                            "subject": row.get("subject"),
                            "department": row.get("department"),
                        },
                        "predicted": result.to_dict(),
                    }
                )

        report = {
            "intent": classification_metrics(intent_true, intent_pred),
            "slots": {
                "subject_accuracy": slot_accuracy(subject_true, subject_pred),
                "department_accuracy": slot_accuracy(department_true, department_pred),
            },
            "latency": {
                "avg_ms": statistics.mean(latencies) if latencies else 0.0,
                "p95_ms": _percentile(latencies, 95),
            },
            "total": len(rows),
            "misses": misses,
        }
        write_json(output_path, report)
        return report


def _percentile(values: list[float], p: int) -> float:
    if not values:
        return 0.0
    ordered = sorted(values)
    idx = int((p / 100) * (len(ordered) - 1))
    return ordered[idx]
