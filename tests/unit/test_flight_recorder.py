import json

from wayfinder.layers.action.executor import ActionResult
from wayfinder.layers.action.highlighter import HighlightEntry
from wayfinder.layers.sense.change_monitor import ChangeEvent
from wayfinder.layers.sense.readiness import ReadinessResult
from wayfinder.reporters.flight_recorder import FlightRecorder


def readiness_result():
    return ReadinessResult(
        success=True,
        reason="complete_network_quiet",
        url="https://example.com/<app>",
        ready_state="complete",
        duration_ms=640,
        actual_load_time_ms=900,
        network_quiet=True,
        has_content=True,
        images_loaded=True,
    )


def test_run_directory_created(tmp_path):
    recorder = FlightRecorder(output_dir=str(tmp_path), run_name="run1")

    assert (tmp_path / "run1" / "screenshots").is_dir()


def test_entries_are_sequenced(tmp_path):
    recorder = FlightRecorder(output_dir=str(tmp_path), run_name="run1")

    recorder.log_navigation(readiness_result())
    recorder.log_classification("https://example.com/", 12)
    recorder.log_highlight([HighlightEntry("elem_1", 1, "#0000FF", "button", "button#go")])
    recorder.log_action_result(ActionResult(True, "click", "button#go", 5.0))
    recorder.log_refresh(ChangeEvent(True, frozenset({"interactive_elements"}), 1), refreshed=True)
    recorder.log_warning("slow page")
    recorder.log_error("boom", ValueError("bad"))

    assert [e.sequence for e in recorder.entries] == [1, 2, 3, 4, 5, 6, 7]
    assert [e.event_type for e in recorder.entries] == [
        "navigation", "classification", "highlight", "action", "refresh", "warning", "error",
    ]
    assert recorder.entries[2].data["preview"] == ["#1 button button#go"]
    assert recorder.entries[4].message == "Refreshed after ['interactive_elements']"
    assert recorder.entries[6].data["exception"] == "bad"
    assert recorder.metadata["url"] == "https://example.com/<app>"


def test_no_refresh_message(tmp_path):
    recorder = FlightRecorder(output_dir=str(tmp_path), run_name="run1")

    recorder.log_refresh(ChangeEvent(False, reason="timeout"), refreshed=False)

    assert recorder.entries[0].message == "No refresh (timeout)"
    assert recorder.entries[0].data["refreshed"] is False


def test_screenshot_attached_to_latest_entry(tmp_path):
    recorder = FlightRecorder(output_dir=str(tmp_path), run_name="run1")
    recorder.log_info("before")

    path = recorder.capture_screenshot("step_1", b"png-bytes")

    assert recorder.entries[-1].screenshot_path == path
    assert (tmp_path / "run1" / "screenshots" / "step_1.png").read_bytes() == b"png-bytes"


def test_generate_report_writes_json_and_html(tmp_path):
    recorder = FlightRecorder(output_dir=str(tmp_path), run_name="run1")
    recorder.log_navigation(readiness_result())
    recorder.log_action_result(ActionResult(False, "type", "input#q", 3.0, error="Element not found"))

    report_path = recorder.generate_report()

    record = json.loads((tmp_path / "run1" / "flight_record.json").read_text(encoding="utf-8"))
    assert record["metadata"]["total_events"] == 2
    assert record["entries"][0]["data"]["reason"] == "complete_network_quiet"

    html = (tmp_path / "run1" / "report.html").read_text(encoding="utf-8")
    assert report_path.endswith("report.html")
    assert "https://example.com/&lt;app&gt;" in html
    assert "<app>" not in html
    assert "0/1" in html
