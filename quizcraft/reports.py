"""
Question issue reports.
"""
import logging
from datetime import datetime, timezone
from typing import List, Optional

from .models import Question, QuestionReport, ReportStatus
from .storage import QUESTION_REPORTS_KEY, PersistentStore


class ReportLog:
    """Append-only list of question reports kept in the persistent store."""

    def __init__(self, store: PersistentStore):
        self.store = store
        self.logger = logging.getLogger(__name__)

    def _read(self) -> List[dict]:
        reports = self.store.get(QUESTION_REPORTS_KEY, [])
        return reports if isinstance(reports, list) else []

    def report_question(self, question: Question, reason: str) -> QuestionReport:
        """
        Record a report against a question.

        Args:
            question: The question being reported (stored as a snapshot)
            reason: Free-text reason given by the user

        Returns:
            The stored report, with status pending
        """
        if not reason or not reason.strip():
            raise ValueError("A report needs a reason")

        report = QuestionReport(
            question=question.to_dict(),
            reason=reason.strip(),
            timestamp=datetime.now(timezone.utc).isoformat(),
        )
        self.store.set(QUESTION_REPORTS_KEY, self._read() + [report.to_dict()])
        self.logger.info(f"Question {question.id} reported in folder '{question.folder}': {report.reason}")
        return report

    def list_reports(self, status: Optional[ReportStatus] = None) -> List[QuestionReport]:
        reports = [QuestionReport.from_dict(entry) for entry in self._read()]
        if status is None:
            return reports
        return [report for report in reports if report.status == status]

    def update_status(self, index: int, status: ReportStatus) -> QuestionReport:
        """Change the review status of the report at index."""
        reports = self._read()
        if index < 0 or index >= len(reports):
            raise IndexError(f"No report at index {index}")
        reports[index]['status'] = status.value
        self.store.set(QUESTION_REPORTS_KEY, reports)
        return QuestionReport.from_dict(reports[index])
