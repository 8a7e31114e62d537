from __future__ import annotations

from collections import Counter
from threading import Lock


class MetricsRegistry:
    HTTP_DURATION_BUCKETS = (0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0)

    def __init__(self) -> None:
        self._lock = Lock()
        self._http_requests_total: Counter[tuple[str, str, str]] = Counter()
        self._http_request_duration_seconds_sum: Counter[tuple[str, str]] = Counter()
        self._http_request_duration_seconds_count: Counter[tuple[str, str]] = Counter()
        self._http_request_duration_seconds_bucket: Counter[tuple[str, str, str]] = (
            Counter()
        )
        self._auth_events_total: Counter[tuple[str, str, str]] = Counter()
        self._session_store_failures_total: Counter[tuple[str]] = Counter()

    def record_http_request(
        self,
        *,
        method: str,
        route_path: str,
        status_code: int,
        duration_seconds: float,
    ) -> None:
        status = str(status_code)
        labels = (method.upper(), route_path, status)
        histogram_key = (method.upper(), route_path)
        with self._lock:
            self._http_requests_total[labels] += 1
            self._http_request_duration_seconds_sum[histogram_key] += max(
                0.0, duration_seconds
            )
            self._http_request_duration_seconds_count[histogram_key] += 1
            for bucket in self.HTTP_DURATION_BUCKETS:
                if duration_seconds <= bucket:
                    self._http_request_duration_seconds_bucket[
                        (histogram_key[0], histogram_key[1], str(bucket))
                    ] += 1
            self._http_request_duration_seconds_bucket[
                (histogram_key[0], histogram_key[1], "+Inf")
            ] += 1

    def record_auth_event(self, *, event: str, provider: str, outcome: str) -> None:
        with self._lock:
            self._auth_events_total[(event, provider, outcome)] += 1

    def record_store_failure(self, *, operation: str) -> None:
        with self._lock:
            self._session_store_failures_total[(operation,)] += 1

    def auth_event_count(self, *, event: str, provider: str, outcome: str) -> int:
        with self._lock:
            return self._auth_events_total[(event, provider, outcome)]

    def reset(self) -> None:
        with self._lock:
            self._http_requests_total.clear()
            self._http_request_duration_seconds_sum.clear()
            self._http_request_duration_seconds_count.clear()
            self._http_request_duration_seconds_bucket.clear()
            self._auth_events_total.clear()
            self._session_store_failures_total.clear()

    def render_prometheus(self) -> str:
        with self._lock:
            lines: list[str] = []

            lines.extend(
                [
                    "# HELP oauth_portal_http_requests_total Total HTTP requests by route.",
                    "# TYPE oauth_portal_http_requests_total counter",
                ]
            )
            for (method, path, status), value in sorted(self._http_requests_total.items()):
                lines.append(
                    f'oauth_portal_http_requests_total{{method="{_escape(method)}",path="{_escape(path)}",status="{_escape(status)}"}} {value}'
                )

            lines.extend(
                [
                    "# HELP oauth_portal_http_request_duration_seconds HTTP request latency histogram.",
                    "# TYPE oauth_portal_http_request_duration_seconds histogram",
                ]
            )
            for (method, path, le), value in sorted(
                self._http_request_duration_seconds_bucket.items()
            ):
                lines.append(
                    f'oauth_portal_http_request_duration_seconds_bucket{{method="{_escape(method)}",path="{_escape(path)}",le="{_escape(le)}"}} {value}'
                )
            for (method, path), value in sorted(
                self._http_request_duration_seconds_count.items()
            ):
                lines.append(
                    f'oauth_portal_http_request_duration_seconds_count{{method="{_escape(method)}",path="{_escape(path)}"}} {value}'
                )
            for (method, path), value in sorted(
                self._http_request_duration_seconds_sum.items()
            ):
                lines.append(
                    f'oauth_portal_http_request_duration_seconds_sum{{method="{_escape(method)}",path="{_escape(path)}"}} {value}'
                )

            lines.extend(
                [
                    "# HELP oauth_portal_auth_events_total Login and logout outcomes by provider.",
                    "# TYPE oauth_portal_auth_events_total counter",
                ]
            )
            for (event, provider, outcome), value in sorted(self._auth_events_total.items()):
                lines.append(
                    f'oauth_portal_auth_events_total{{event="{_escape(event)}",provider="{_escape(provider)}",outcome="{_escape(outcome)}"}} {value}'
                )

            lines.extend(
                [
                    "# HELP oauth_portal_session_store_failures_total Session store errors by operation.",
                    "# TYPE oauth_portal_session_store_failures_total counter",
                ]
            )
            for (operation,), value in sorted(self._session_store_failures_total.items()):
                lines.append(
                    f'oauth_portal_session_store_failures_total{{operation="{_escape(operation)}"}} {value}'
                )

            return "\n".join(lines) + "\n"


def _escape(raw: str) -> str:
    return raw.replace("\\", "\\\\").replace('"', '\\"')


metrics_registry = MetricsRegistry()
