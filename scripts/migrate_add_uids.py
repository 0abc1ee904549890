from __future__ import annotations

import json

from campus_connect.db.migrations import add_missing_uids
from campus_connect.db.store import DocumentStore
from campus_connect.utils.logging import configure_logging


if __name__ == "__main__":
    configure_logging()
    summary = add_missing_uids(DocumentStore())
    print(json.dumps(summary, indent=2))
