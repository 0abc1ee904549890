from __future__ import annotations

import json

from campus_connect.config import EVAL_DATA_DIR, REPORTS_DIR
from campus_connect.evaluation.benchmark import IntentBenchmarkRunner
from campus_connect.nlp.intent import IntentClassifier
from campus_connect.utils.logging import configure_logging


if __name__ == "__main__":
    configure_logging()
    report = IntentBenchmarkRunner(IntentClassifier()).run(
        gold_path=EVAL_DATA_DIR / "intent_gold.json",
        output_path=REPORTS_DIR / "intent_report.json",
    )
    print(json.dumps(report, indent=2))
