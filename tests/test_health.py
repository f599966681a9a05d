from detran_checklist.health import BackendHealthMonitor


def test_health_monitor_tracks_metrics():
    monitor = BackendHealthMonitor(max_records=5)
    monitor.record_request(backend="b", operation="get", duration_ms=100, success=True, cache_hit=True)
    monitor.record_request(
        backend="b", operation="post", duration_ms=200, success=False, error_message="timeout"
    )
    monitor.record_request(backend="b", operation="get", duration_ms=150, success=True)

    summary = monitor.summary()
    assert summary["recent_requests"] == 3
    assert 0 < summary["avg_duration_ms"] < 200
    assert summary["cache_hit_ratio"] > 0
    assert summary["requests_by_operation"] == {"get": 2, "post": 1}
    assert "timeout" in summary["recent_errors"]


def test_health_monitor_drops_oldest_records():
    monitor = BackendHealthMonitor(max_records=2)
    monitor.record_request(backend="b", operation="get", duration_ms=1, success=True, cache_hit=True)
    monitor.record_request(backend="b", operation="get", duration_ms=1, success=True)
    monitor.record_request(backend="b", operation="get", duration_ms=1, success=True)

    summary = monitor.summary()
    assert summary["recent_requests"] == 2
    assert monitor.cache_hit_ratio() == 0.0


def test_empty_monitor_summary():
    summary = BackendHealthMonitor().summary()
    assert summary["recent_requests"] == 0
    assert summary["success_rate"] == 1.0


def test_health_monitor_groups_by_backend_and_failure():
    monitor = BackendHealthMonitor()
    monitor.record_request(backend="json", operation="update", duration_ms=3, success=True)
    monitor.record_request(
        backend="postgrest", operation="get", duration_ms=40, success=False, error_message="503"
    )
    monitor.record_request(backend="postgrest", operation="get", duration_ms=20, success=True)

    summary = monitor.summary()
    assert summary["requests_by_backend"] == {"json": 1, "postgrest": 2}
    assert summary["failures_by_operation"] == {"get": 1}
    assert summary["last_failure_at"] is not None


def test_summary_without_failures():
    monitor = BackendHealthMonitor()
    monitor.record_request(backend="json", operation="import", duration_ms=1, success=True)

    summary = monitor.summary()
    assert summary["failures_by_operation"] == {}
    assert summary["last_failure_at"] is None
