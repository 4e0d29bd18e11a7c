"""In-process metrics collector with Prometheus text exposition."""

from __future__ import annotations

from collections import defaultdict
from threading import Lock
import time
from typing import Dict, Tuple


_lock = Lock()
_started_at = time.time()

_http_requests_total: Dict[Tuple[str, str, str], int] = defaultdict(int)
_http_request_duration_sum: Dict[Tuple[str, str], float] = defaultdict(float)
_http_request_duration_count: Dict[Tuple[str, str], int] = defaultdict(int)
_generation_attempts_total: Dict[str, int] = defaultdict(int)
_generation_echoes_total: Dict[str, int] = defaultdict(int)
_generation_results_total: Dict[Tuple[str, str], int] = defaultdict(int)


def _escape_label(value: str) -> str:
    return value.replace("\\", "\\\\").replace('"', '\\"')


def _normalize_label(value: str, *, fallback: str = "unknown") -> str:
    normalized = (value or "").strip()
    return normalized or fallback


def record_http_request(*, method: str, path: str, status_code: int, duration_seconds: float) -> None:
    status = str(status_code)
    method_label = method.upper()
    path_label = path or "unknown"
    duration = max(duration_seconds, 0.0)

    with _lock:
        _http_requests_total[(method_label, path_label, status)] += 1
        _http_request_duration_sum[(method_label, path_label)] += duration
        _http_request_duration_count[(method_label, path_label)] += 1


def record_generation_attempt(*, mode: str, count: int = 1) -> None:
    if count <= 0:
        return
    with _lock:
        _generation_attempts_total[_normalize_label(mode)] += int(count)


def record_generation_echo(*, mode: str, count: int = 1) -> None:
    if count <= 0:
        return
    with _lock:
        _generation_echoes_total[_normalize_label(mode)] += int(count)


def record_generation_result(*, mode: str, outcome: str, count: int = 1) -> None:
    if count <= 0:
        return
    with _lock:
        key = (_normalize_label(mode), _normalize_label(outcome))
        _generation_results_total[key] += int(count)


def render_prometheus_metrics(*, app_name: str, app_version: str, env: str) -> str:
    uptime = max(time.time() - _started_at, 0.0)

    with _lock:
        http_total = dict(_http_requests_total)
        duration_sum = dict(_http_request_duration_sum)
        duration_count = dict(_http_request_duration_count)
        attempts_total = dict(_generation_attempts_total)
        echoes_total = dict(_generation_echoes_total)
        results_total = dict(_generation_results_total)

    lines = [
        "# HELP headshot_build_info Build metadata.",
        "# TYPE headshot_build_info gauge",
        (
            f'headshot_build_info{{app_name="{_escape_label(app_name)}",'
            f'version="{_escape_label(app_version)}",env="{_escape_label(env)}"}} 1'
        ),
        "# HELP headshot_process_uptime_seconds Process uptime in seconds.",
        "# TYPE headshot_process_uptime_seconds gauge",
        f"headshot_process_uptime_seconds {uptime:.6f}",
        "# HELP headshot_http_requests_total Total HTTP requests.",
        "# TYPE headshot_http_requests_total counter",
    ]

    for (method, path, status), value in sorted(http_total.items()):
        lines.append(
            (
                f'headshot_http_requests_total{{method="{_escape_label(method)}",'
                f'path="{_escape_label(path)}",status="{_escape_label(status)}"}} {value}'
            )
        )

    lines.extend(
        [
            "# HELP headshot_http_request_duration_seconds Request duration summary.",
            "# TYPE headshot_http_request_duration_seconds summary",
        ]
    )
    for (method, path), value in sorted(duration_sum.items()):
        lines.append(
            (
                f'headshot_http_request_duration_seconds_sum{{method="{_escape_label(method)}",'
                f'path="{_escape_label(path)}"}} {value:.6f}'
            )
        )
    for (method, path), value in sorted(duration_count.items()):
        lines.append(
            (
                f'headshot_http_request_duration_seconds_count{{method="{_escape_label(method)}",'
                f'path="{_escape_label(path)}"}} {value}'
            )
        )

    lines.extend(
        [
            "# HELP headshot_generation_attempts_total Model calls issued for generation.",
            "# TYPE headshot_generation_attempts_total counter",
        ]
    )
    for mode, value in sorted(attempts_total.items()):
        lines.append(f'headshot_generation_attempts_total{{mode="{_escape_label(mode)}"}} {value}')

    lines.extend(
        [
            "# HELP headshot_generation_echoes_total Attempts where the model echoed an input image.",
            "# TYPE headshot_generation_echoes_total counter",
        ]
    )
    for mode, value in sorted(echoes_total.items()):
        lines.append(f'headshot_generation_echoes_total{{mode="{_escape_label(mode)}"}} {value}')

    lines.extend(
        [
            "# HELP headshot_generation_results_total Generation outcomes by kind.",
            "# TYPE headshot_generation_results_total counter",
        ]
    )
    for (mode, outcome), value in sorted(results_total.items()):
        lines.append(
            (
                f'headshot_generation_results_total{{mode="{_escape_label(mode)}",'
                f'outcome="{_escape_label(outcome)}"}} {value}'
            )
        )

    lines.append("")
    return "\n".join(lines)


def reset_metrics_for_tests() -> None:
    global _started_at
    with _lock:
        _http_requests_total.clear()
        _http_request_duration_sum.clear()
        _http_request_duration_count.clear()
        _generation_attempts_total.clear()
        _generation_echoes_total.clear()
        _generation_results_total.clear()
        _started_at = time.time()
