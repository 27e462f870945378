"""Prometheus metrics definitions."""

from prometheus_client import Counter, Gauge, Histogram

# Inbound metrics
EVENTS_RECEIVED = Counter(
    "autorule_events_received_total",
    "Total number of inbound trigger events acknowledged",
    ["trigger_slug"],
)

DISPATCH_OUTCOMES = Counter(
    "autorule_dispatch_outcomes_total",
    "Final state of each dispatched event",
    ["state", "reason"],
)

# Matching metrics
MATCH_DECISIONS = Counter(
    "autorule_match_decisions_total",
    "Condition evaluations by outcome",
    ["outcome"],
)

# Execution metrics
RULE_RUNS = Counter(
    "autorule_rule_runs_total",
    "Rule runs by origin and status",
    ["origin", "status"],
)

STEP_FAILURES = Counter(
    "autorule_step_failures_total",
    "Failed steps by step type",
    ["step_type"],
)

RULE_RUN_DURATION = Histogram(
    "autorule_rule_run_duration_seconds",
    "Rule run duration in seconds",
    ["origin"],
    buckets=(0.1, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0),
)

# Scheduler metrics
TICK_DURATION = Histogram(
    "autorule_scheduler_tick_duration_seconds",
    "Scheduler tick duration in seconds",
    buckets=(0.1, 0.5, 1.0, 5.0, 15.0, 30.0, 60.0, 120.0),
)

# Output metrics
OUTPUTS_SENT = Counter(
    "autorule_outputs_sent_total",
    "Output deliveries by platform",
    ["platform", "status"],
)

OUTPUT_QUEUE_LENGTH = Gauge(
    "autorule_output_queue_length",
    "Number of tasks in output queue",
)
