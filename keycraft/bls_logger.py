#!/usr/bin/env python3
"""
JSONL generation log for optimiser runs.

Each generation appends one line:

    {"generation": 1, "score": -3.2, "best_score": -3.1, "elapsed_seconds": 0.84}

Lines are written and flushed inline, so a slow sink slows the run.
"""

import json
from dataclasses import asdict, dataclass
from typing import Optional, TextIO


@dataclass(frozen=True)
class GenerationRecord:
    generation: int
    score: float
    best_score: float
    elapsed_seconds: float


class GenerationLogger:
    """Append-only writer of GenerationRecords to a text sink."""

    def __init__(self, sink: Optional[TextIO]):
        self.sink = sink
        self.records_written = 0

    @property
    def enabled(self) -> bool:
        return self.sink is not None

    def log(self, record: GenerationRecord) -> None:
        if self.sink is None:
            return
        self.sink.write(json.dumps(asdict(record)) + "\n")
        self.sink.flush()
        self.records_written += 1


def read_generation_log(path: str):
    """Load a JSONL generation log back into GenerationRecords."""
    records = []
    with open(path, "r", encoding="utf-8") as f:
        for line in f:
            line = line.strip()
            if line:
                records.append(GenerationRecord(**json.loads(line)))
    return records
