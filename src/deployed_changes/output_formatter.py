"""
Output formatting for deployed change reports.
"""

import json
from pathlib import Path
from typing import Any

from .data_models import RequestOutcome
from .input_reader import SkippedLine


class ChangeReportFormatter:
    """Renders request outcomes for the console or as JSON."""

    def format_table_output(
        self,
        outcomes: list[RequestOutcome],
        skipped: list[SkippedLine] | None = None,
    ) -> str:
        """Format outcomes as a per-service report."""
        skipped = skipped or []
        lines = []

        for outcome in outcomes:
            request = outcome.request
            lines.append(f"{request.service} ({request.version.raw})")
            lines.append("-" * 60)

            failure = outcome.failure
            if failure is not None:
                lines.append(f"  FAILED: {failure.message}")
            elif not outcome.commits:
                lines.append("  No changes since deployed version")
            else:
                for commit in outcome.commits:
                    lines.append(f"  {commit.hash[:12]}")
                    for ticket_line in commit.ticket_lines:
                        lines.append(f"      {ticket_line}")
            lines.append("")

        summary = self.summarize(outcomes, skipped)
        lines.append("=" * 60)
        lines.append(
            f"Services: {summary['total']}  Succeeded: {summary['succeeded']}  "
            f"Failed: {summary['failed']}  Skipped input lines: {summary['skipped']}"
        )
        return "\n".join(lines)

    def format_json_output(
        self,
        outcomes: list[RequestOutcome],
        skipped: list[SkippedLine] | None = None,
    ) -> str:
        """Format outcomes as JSON."""
        skipped = skipped or []
        data = {
            "summary": self.summarize(outcomes, skipped),
            "services": [self._outcome_to_dict(outcome) for outcome in outcomes],
            "skipped": [
                {"line_number": s.line_number, "line": s.line, "reason": s.reason}
                for s in skipped
            ],
        }
        return json.dumps(data, indent=2)

    def summarize(
        self, outcomes: list[RequestOutcome], skipped: list[SkippedLine]
    ) -> dict[str, int]:
        """Counts for the report footer."""
        succeeded = sum(1 for outcome in outcomes if outcome.succeeded)
        return {
            "total": len(outcomes),
            "succeeded": succeeded,
            "failed": len(outcomes) - succeeded,
            "skipped": len(skipped),
        }

    def _outcome_to_dict(self, outcome: RequestOutcome) -> dict[str, Any]:
        request = outcome.request
        data: dict[str, Any] = {
            "request_id": outcome.request_id,
            "service": request.service,
            "version": request.version.raw,
            "branch": request.version.branch,
            "build_date": request.version.build_date,
            "content_hash": request.version.content_hash,
            "location": str(request.location),
            "succeeded": outcome.succeeded,
        }
        failure = outcome.failure
        if failure is not None:
            data["error"] = failure.message
        else:
            data["commits"] = [
                {"hash": commit.hash, "ticket_lines": commit.ticket_lines}
                for commit in outcome.commits
            ]
        return data

    def save_to_file(
        self,
        outcomes: list[RequestOutcome],
        output_file: str,
        output_format: str,
        skipped: list[SkippedLine] | None = None,
    ) -> None:
        """Write the formatted report to a file."""
        if output_format == "json":
            content = self.format_json_output(outcomes, skipped)
        elif output_format == "table":
            content = self.format_table_output(outcomes, skipped)
        else:
            raise ValueError(f"Unsupported format: {output_format}")

        path = Path(output_file)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content + "\n", encoding="utf-8")
