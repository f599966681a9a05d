from detran_checklist.metrics import (
    metrics_payload,
    record_backend_request,
    record_http_request,
    record_tool_invocation,
    reset_metrics_for_tests,
)


def test_metrics_payload_contains_recorded_values():
    reset_metrics_for_tests()

    record_tool_invocation("toggle_item", "success", 0.05)
    record_backend_request(
        "postgrest", "get", cache_hit=True, outcome="success", duration_seconds=0.0
    )
    record_http_request("GET", "healthz", 200, 0.01)

    payload, content_type = metrics_payload()

    assert content_type.startswith("text/plain")
    body = payload.decode()
    assert "checklist_tool_calls_total" in body
    assert "toggle_item" in body
    assert "checklist_backend_requests_total" in body
    assert 'cache="hit"' in body
    assert "checklist_http_requests_total" in body


def test_reset_clears_previous_values():
    record_tool_invocation("leave_service", "success", 0.01)
    reset_metrics_for_tests()

    payload, _ = metrics_payload()
    assert "leave_service" not in payload.decode()
