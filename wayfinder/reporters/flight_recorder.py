"""
Flight Recorder - Session Event Trail and Report Generation.

Keeps an ordered trail of what a session did: navigations with their
readiness verdicts, classification and highlight passes, actions,
auto-refreshes and problems. The trail is written as JSON plus a
self-contained HTML timeline.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, TYPE_CHECKING
from datetime import datetime
import html
import json
import logging
import os

from wayfinder.utils.screenshot import save_to_file

if TYPE_CHECKING:
    from wayfinder.layers.action.executor import ActionResult
    from wayfinder.layers.action.highlighter import HighlightEntry
    from wayfinder.layers.sense.change_monitor import ChangeEvent
    from wayfinder.layers.sense.readiness import ReadinessResult

logger = logging.getLogger(__name__)


@dataclass
class LogEntry:
    """A single entry in the flight record."""
    timestamp: datetime
    sequence: int
    event_type: str  # navigation, classification, highlight, action, refresh, info, warning, error
    message: str
    data: Dict[str, Any] = field(default_factory=dict)
    screenshot_path: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "timestamp": self.timestamp.isoformat(),
            "sequence": self.sequence,
            "event_type": self.event_type,
            "message": self.message,
            "data": self.data,
            "screenshot_path": self.screenshot_path,
        }


class FlightRecorder:
    """
    Records a session's activity.

    Example:
        >>> recorder = FlightRecorder()
        >>> recorder.log_navigation(readiness_result)
        >>> recorder.log_highlight(entries)
        >>> report_path = recorder.generate_report()
    """

    def __init__(
        self,
        output_dir: str = "./wayfinder_reports",
        run_name: Optional[str] = None,
    ):
        """
        Initialize the flight recorder.

        Args:
            output_dir: Directory for reports and screenshots
            run_name: Optional name for this run (defaults to a timestamp)
        """
        self.output_dir = output_dir
        self.run_name = run_name or datetime.now().strftime("%Y%m%d_%H%M%S")
        self.entries: List[LogEntry] = []
        self.metadata: Dict[str, Any] = {
            "start_time": datetime.now().isoformat(),
            "run_name": self.run_name,
        }

        self.run_dir = os.path.join(output_dir, self.run_name)
        self.screenshots_dir = os.path.join(self.run_dir, "screenshots")
        os.makedirs(self.screenshots_dir, exist_ok=True)

    def _add(self, event_type: str, message: str, data: Optional[Dict[str, Any]] = None) -> LogEntry:
        entry = LogEntry(
            timestamp=datetime.now(),
            sequence=len(self.entries) + 1,
            event_type=event_type,
            message=message,
            data=data or {},
        )
        self.entries.append(entry)
        return entry

    def log_navigation(self, result: "ReadinessResult") -> None:
        """Log a navigation and its readiness verdict."""
        self._add(
            "navigation",
            f"Navigated to {result.url} ({result.reason}, {result.duration_ms}ms, {result.load_quality})",
            result.to_dict(),
        )
        self.metadata["url"] = result.url

    def log_classification(self, url: str, element_count: int) -> None:
        self._add("classification", f"Classified {element_count} elements", {
            "url": url,
            "element_count": element_count,
        })

    def log_highlight(self, entries: List["HighlightEntry"]) -> None:
        """Log a highlight pass with a short preview of the numbering."""
        self._add("highlight", f"Highlighted {len(entries)} elements", {
            "count": len(entries),
            "preview": [f"#{e.number} {e.element_type} {e.selector}" for e in entries[:10]],
        })

    def log_action_result(self, result: "ActionResult") -> None:
        status = "success" if result.success else "failed"
        self._add("action", f"{result.action} {result.target}: {status}", result.to_dict())

    def log_refresh(self, event: "ChangeEvent", refreshed: bool) -> None:
        """Log an auto-refresh decision."""
        message = (
            f"Refreshed after {sorted(event.change_types)}" if refreshed
            else f"No refresh ({event.reason or 'no changes'})"
        )
        self._add("refresh", message, {**event.to_dict(), "refreshed": refreshed})

    def log_info(self, message: str) -> None:
        self._add("info", message)

    def log_warning(self, message: str) -> None:
        self._add("warning", message)

    def log_error(self, message: str, exception: Optional[Exception] = None) -> None:
        self._add("error", message, {"exception": str(exception) if exception else None})

    def capture_screenshot(self, name: str, png: bytes) -> str:
        """
        Store a screenshot and attach it to the latest entry.

        Args:
            name: File stem for the screenshot
            png: Screenshot bytes

        Returns:
            Path to the saved screenshot
        """
        path = str(save_to_file(png, os.path.join(self.screenshots_dir, f"{name}.png")))
        if self.entries:
            self.entries[-1].screenshot_path = path
        return path

    def generate_report(self) -> str:
        """
        Write flight_record.json and report.html into the run directory.

        Returns:
            Path to the HTML report
        """
        self.metadata["end_time"] = datetime.now().isoformat()
        self.metadata["total_events"] = len(self.entries)

        json_path = os.path.join(self.run_dir, "flight_record.json")
        with open(json_path, "w", encoding="utf-8") as f:
            json.dump({
                "metadata": self.metadata,
                "entries": [e.to_dict() for e in self.entries],
            }, f, indent=2, default=str)

        report_path = os.path.join(self.run_dir, "report.html")
        with open(report_path, "w", encoding="utf-8") as f:
            f.write(self._build_html_report())

        logger.info(f"[Recorder] Report written to {report_path}")
        return report_path

    def _build_html_report(self) -> str:
        actions = [e for e in self.entries if e.event_type == "action"]
        succeeded = len([a for a in actions if a.data.get("success")])
        navigations = len([e for e in self.entries if e.event_type == "navigation"])
        refreshes = len([e for e in self.entries if e.event_type == "refresh" and e.data.get("refreshed")])

        rows = []
        for entry in self.entries:
            screenshot_html = ""
            if entry.screenshot_path:
                rel_path = os.path.relpath(entry.screenshot_path, self.run_dir)
                screenshot_html = f'<img src="{html.escape(rel_path)}" class="shot">'
            data_html = self._format_data(entry.data)
            rows.append(
                f'<div class="item {self._get_status_class(entry)}">'
                f'<span class="time">{entry.timestamp.strftime("%H:%M:%S")}</span>'
                f'<span class="kind">{entry.event_type}</span>'
                f'<div class="msg">{html.escape(entry.message)}</div>'
                f'{data_html}{screenshot_html}</div>'
            )

        title = html.escape(self.run_name)
        url = html.escape(str(self.metadata.get("url", "N/A")))
        return f"""<!DOCTYPE html>
<html lang="en">
<head>
<meta charset="UTF-8">
<title>Wayfinder Flight Record - {title}</title>
<style>
  body {{ font-family: -apple-system, 'Segoe UI', Roboto, sans-serif; background: #0d1117;
         color: #c9d1d9; padding: 2rem; line-height: 1.5; }}
  .stats {{ display: flex; gap: 1rem; margin: 1rem 0 2rem; }}
  .stat {{ background: #161b22; border: 1px solid #30363d; border-radius: 8px; padding: 1rem 1.5rem; }}
  .stat b {{ display: block; font-size: 1.6rem; color: #58a6ff; }}
  .item {{ background: #161b22; border-left: 3px solid #30363d; margin: .5rem 0; padding: .6rem 1rem; }}
  .time, .kind {{ color: #8b949e; font-size: .8rem; margin-right: 1rem; }}
  .data {{ font-family: monospace; font-size: .8rem; white-space: pre-wrap; color: #8b949e; }}
  .shot {{ max-width: 320px; margin-top: .5rem; }}
  .success {{ border-left-color: #3fb950; }}
  .warning {{ border-left-color: #d29922; }}
  .error {{ border-left-color: #f85149; }}
</style>
</head>
<body>
<h1>Wayfinder Flight Record</h1>
<p>Run: {title}<br>{url}</p>
<div class="stats">
  <div class="stat"><b>{navigations}</b>Navigations</div>
  <div class="stat"><b>{succeeded}/{len(actions)}</b>Actions succeeded</div>
  <div class="stat"><b>{refreshes}</b>Auto-refreshes</div>
</div>
{''.join(rows)}
</body>
</html>"""

    def _get_status_class(self, entry: LogEntry) -> str:
        if entry.event_type in ("error", "warning"):
            return entry.event_type
        if entry.event_type == "action":
            return "success" if entry.data.get("success") else "error"
        if entry.event_type == "navigation":
            return "success" if entry.data.get("has_content") else "warning"
        return ""

    def _format_data(self, data: Dict[str, Any]) -> str:
        # Large nested values are left to the JSON record
        filtered = {
            k: v for k, v in data.items()
            if not isinstance(v, (list, dict)) or len(str(v)) < 400
        }
        if not filtered:
            return ""
        return f'<div class="data">{html.escape(json.dumps(filtered, indent=2, default=str))}</div>'
