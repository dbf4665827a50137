# coordination/metrics.py
from prometheus_client import Counter, Summary


NEGOTIATION_BUILD_TIME = Summary(
    "coordination_negotiation_build_seconds",
    "Time spent building a negotiation for one contested block",
)

NEGOTIATIONS_CREATED = Counter(
    "coordination_negotiations_total",
    "Negotiations created, by conflict type",
    ["type"],
)

PRIORITY_FALLBACKS = Counter(
    "coordination_priority_fallback_total",
    "Conflicting members whose roster record was missing (default priority used)",
)
