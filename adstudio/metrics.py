"""
Thread-safe in-memory metrics for the generation service.

Tracks:
  - Traffic: request counters by endpoint
  - Outcomes: jobs created / completed / failed / download fallbacks
  - Latency: job duration samples (seconds)
  - Saturation: active jobs gauge

All data is ephemeral (resets on restart), like the job store itself.
"""

import time
import threading
from collections import defaultdict
from typing import Dict, List

_lock = threading.Lock()

_counters: Dict[str, int] = defaultdict(int)
_gauges: Dict[str, float] = defaultdict(float)

# ── Latency samples (last 100 per name) ──────────────────────────────────────
_latency_samples: Dict[str, List[float]] = defaultdict(list)
MAX_SAMPLES = 100

# ── Error log (last 50 failures) ─────────────────────────────────────────────
_recent_errors: List[dict] = []
MAX_ERRORS = 50


def inc_counter(name: str, amount: int = 1):
    """Increment a counter (e.g. 'requests.generate', 'jobs.failed')."""
    with _lock:
        _counters[name] += amount


def add_gauge(name: str, delta: float):
    with _lock:
        _gauges[name] += delta


def set_gauge(name: str, value: float):
    with _lock:
        _gauges[name] = value


def record_latency(name: str, seconds: float):
    with _lock:
        samples = _latency_samples[name]
        samples.append(seconds)
        if len(samples) > MAX_SAMPLES:
            _latency_samples[name] = samples[-MAX_SAMPLES:]


def record_error(source: str, job_id: str, message: str):
    with _lock:
        _recent_errors.append({
            "timestamp": time.time(),
            "source": source,
            "job_id": job_id,
            "message": message[:300],
        })
        if len(_recent_errors) > MAX_ERRORS:
            _recent_errors.pop(0)


def get_snapshot() -> dict:
    now = time.time()
    with _lock:
        latency_stats = {}
        for name, samples in _latency_samples.items():
            if not samples:
                continue
            sorted_s = sorted(samples)
            n = len(sorted_s)
            latency_stats[name] = {
                "p50": sorted_s[n // 2],
                "p95": sorted_s[int(n * 0.95)] if n >= 20 else sorted_s[-1],
                "avg": sum(sorted_s) / n,
                "count": n,
            }

        return {
            "timestamp": now,
            "counters": dict(_counters),
            "gauges": dict(_gauges),
            "latency": latency_stats,
            "recent_errors": list(_recent_errors[-10:]),
            "uptime_seconds": now - _gauges.get("start_time", now),
        }


def reset():
    with _lock:
        _counters.clear()
        _gauges.clear()
        _latency_samples.clear()
        _recent_errors.clear()
