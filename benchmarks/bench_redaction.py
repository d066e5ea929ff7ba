"""Redaction + scope classification benchmark.

Measures p99 latency of the synchronous part of the pipeline (redact the
question, then classify the redacted text) across question shapes:

  1. Short in-scope question with no PII
  2. Question carrying an email, a phone number and a passport number
  3. Out-of-scope question (every scope phrase is tried and misses)
  4. A body-cap-sized question of digits and separators (phone pattern worst case)

Both stages must stay well under a millisecond at p99 so that the upstream
call is the only meaningful latency.

Usage (from project root):
    python benchmarks/bench_redaction.py
"""

from __future__ import annotations

import statistics
import time
from typing import Any

from visaplex.constants import MAX_REQUEST_BODY_BYTES
from visaplex.pipeline.classifier import ScopeClassifier
from visaplex.pipeline.redactor import Redactor
from visaplex.policy import default_policy

# ---------------------------------------------------------------------------
# Test inputs
# ---------------------------------------------------------------------------

SHORT_IN_SCOPE = "What is the processing timeline for a partner visa?"
WITH_PII = (
    "My partner jane.doe@example.co.nz (+64 21 555 0199) has passport LA1234567 "
    "and we have been living together for two years. Is that enough?"
)
OUT_OF_SCOPE = "Can you help me file for a tourist visa and book flights to Queenstown? " * 10
SEPARATOR_FLOOD = ("1 - " * (MAX_REQUEST_BODY_BYTES // 4))[: MAX_REQUEST_BODY_BYTES - 1] + "x"

P99_BUDGET_MS = 1.0
# The flood input is ~64 KB; it is held to a looser bound.
FLOOD_BUDGET_MS = 25.0


# ---------------------------------------------------------------------------
# Benchmark runner
# ---------------------------------------------------------------------------


def measure_p99(fn: Any, *args: Any, n: int = 1_000) -> tuple[float, float, float]:
    """Run fn(*args) n times and return (p50, p99, max) in milliseconds."""
    latencies: list[float] = []
    for _ in range(n):
        start = time.perf_counter()
        fn(*args)
        latencies.append((time.perf_counter() - start) * 1_000)
    latencies.sort()
    return statistics.median(latencies), latencies[int(0.99 * n)], latencies[-1]


def run_benchmarks() -> bool:
    """Run all benchmarks. Returns True if all pass."""
    WARMUP = 100
    N = 1_000

    policy = default_policy()
    redactor = Redactor(policy.redaction_patterns)
    classifier = ScopeClassifier(policy.scope_phrases)

    def redact_and_classify(text: str) -> bool:
        return classifier.is_in_scope(redactor.redact(text))

    print("=" * 70)
    print("VisaPlex redact + classify benchmark")
    print(f"Warmup: {WARMUP} calls | Measurement: {N} calls each")
    print("=" * 70)

    scenarios = [
        (f"Short in-scope ({len(SHORT_IN_SCOPE)} chars)", SHORT_IN_SCOPE, P99_BUDGET_MS),
        (f"With PII ({len(WITH_PII)} chars)", WITH_PII, P99_BUDGET_MS),
        (f"Out of scope ({len(OUT_OF_SCOPE)} chars)", OUT_OF_SCOPE, P99_BUDGET_MS),
        (f"Separator flood ({len(SEPARATOR_FLOOD)} chars)", SEPARATOR_FLOOD, FLOOD_BUDGET_MS),
    ]

    all_pass = True
    for name, text, budget in scenarios:
        for _ in range(WARMUP):
            redact_and_classify(text)

        p50, p99, worst = measure_p99(redact_and_classify, text, n=N)
        passed = p99 <= budget
        all_pass = all_pass and passed
        print(f"  [{'PASS' if passed else 'FAIL'}] {name}")
        print(f"          p50={p50:.3f}ms  p99={p99:.3f}ms  worst={worst:.3f}ms  budget={budget}ms")

    print("=" * 70)
    print("RESULT: ALL BENCHMARKS PASSED" if all_pass else "RESULT: SOME BENCHMARKS FAILED")
    print("=" * 70)
    return all_pass


if __name__ == "__main__":
    import sys

    sys.exit(0 if run_benchmarks() else 1)
