"""
Token print jobs.

The executor is the boundary where printer failures stop being exceptions:
every outcome comes back as a PrintResult. It never retries; a caller that
wants another attempt calls it again, as ``reprint`` does.
"""

import logging
from typing import Iterable, List

from . import formatter
from .exceptions import wrap_error
from .manager import ConnectionManager
from .models import PrintResult, TokenJob

logger = logging.getLogger(__name__)


class PrintJobExecutor:
    """Formats token receipts and sends them through the connection manager."""

    def __init__(self, manager: ConnectionManager):
        self.manager = manager

    def _print(self, job: TokenJob, action: str) -> PrintResult:
        try:
            if not self.manager.is_connected:
                logger.info("[Executor] No connected printer, initializing default printer")
                self.manager.initialize()

            printer = self.manager.printer
            commands = formatter.token_receipt(
                job.token_number,
                job.timestamp,
                title=printer.setting('title') or formatter.DEFAULT_TITLE,
            )
            if not printer.setting('auto_cut', True):
                commands = formatter.without_cut(commands)
            self.manager.send(formatter.encode(commands))
        except Exception as e:
            error = wrap_error(e)
            logger.error(f"[Executor] Failed to {action} token #{job.token_number}: "
                         f"{error.category.value} ({error.technical_detail})")
            return PrintResult(
                success=False,
                token_number=job.token_number,
                error_category=error.category,
                user_message=error.user_message,
                technical_detail=error.technical_detail,
                message=f"Token #{job.token_number} could not be {action}ed",
            )

        logger.info(f"[Executor] Token #{job.token_number} {action}ed on {printer.name}")
        return PrintResult(
            success=True,
            token_number=job.token_number,
            message=f"Token #{job.token_number} {action}ed successfully",
        )

    def print_one(self, job: TokenJob) -> PrintResult:
        """
        Print one token receipt.

        Args:
            job: Token number and issue time

        Returns:
            PrintResult; failures carry the error category, user message and raw detail
        """
        return self._print(job, 'print')

    def reprint(self, job: TokenJob) -> PrintResult:
        return self._print(job, 'reprint')

    def print_many(self, jobs: Iterable[TokenJob]) -> List[PrintResult]:
        """Print jobs one after another. A failed job does not stop the rest."""
        return [self.print_one(job) for job in jobs]

    @staticmethod
    def summarize(results: List[PrintResult]) -> dict:
        """
        Aggregate a batch of results. An empty batch printed nothing and counts as failed.

        Returns:
            {"print_status": "success" | "partial" | "failed", "success_count", "fail_count"}
        """
        success_count = sum(1 for r in results if r.success)
        fail_count = len(results) - success_count
        if success_count == 0:
            status = 'failed'
        elif fail_count == 0:
            status = 'success'
        else:
            status = 'partial'
        return {
            'print_status': status,
            'success_count': success_count,
            'fail_count': fail_count,
        }
