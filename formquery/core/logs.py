import logging
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence

from formquery.core.config import settings

logger = logging.getLogger("formquery")


class QueryLogger:
    """Step log and outcome of a single collect() run."""

    def __init__(self, form_id: str, operations: Sequence[str] = ()):
        """
        Initialize a logger scoped to one query against one form.

        Args:
            form_id: Root form the query reads from.
            operations: describe() of each queued operation, in order.

        Example:
            query_logger = QueryLogger("cq9xvuplbz4ks2", ["filter(Org == 'A')", "slice_head(10)"])
        """
        self.form_id = form_id
        self.operations = list(operations)
        self.start_time = datetime.now()
        self.window: Optional[Dict[str, Any]] = None
        self.rows_received: Optional[int] = None
        self.rows_returned: Optional[int] = None
        self.failed = False
        self.logs = []

    def log(self, step: str, message: str, level: str = "info"):
        """Record a step and mirror it to the module logger."""
        log_entry = {
            "timestamp": datetime.now().isoformat(),
            "step": step,
            "message": message,
            "level": level,
            "elapsed_seconds": (datetime.now() - self.start_time).total_seconds(),
        }
        self.logs.append(log_entry)

        if level == "error":
            self.failed = True
            logger.error(f"[Form {self.form_id}] {step}: {message}")
        elif level == "warning":
            logger.warning(f"[Form {self.form_id}] {step}: {message}")
        else:
            logger.info(f"[Form {self.form_id}] {step}: {message}")

    def request_sent(self, offset: int, limit: Optional[int]):
        """Record the window pushed to the server."""
        self.window = {"offset": offset, "limit": limit}
        shown = "all" if limit is None else limit
        self.log(
            "request",
            f"Sending {len(self.operations)} operations "
            f"({' | '.join(self.operations) or 'all records'}), "
            f"window offset={offset} limit={shown}",
        )

    def rows_arrived(self, rows: int, columns: int):
        self.rows_received = rows
        self.log("response", f"Received {rows} rows, {columns} columns")

    def finished(self, rows: int):
        self.rows_returned = rows

    def get_logs(self) -> List[Dict[str, Any]]:
        return self.logs

    def get_summary(self) -> Dict[str, Any]:
        end_time = datetime.now()

        return {
            "form_id": self.form_id,
            "operations": self.operations,
            "operation_count": len(self.operations),
            "window": self.window,
            "rows_received": self.rows_received,
            "rows_returned": self.rows_returned,
            "status": "failed" if self.failed else "ok",
            "start_time": self.start_time.isoformat(),
            "end_time": end_time.isoformat(),
            "duration_seconds": (end_time - self.start_time).total_seconds(),
            "total_logs": len(self.logs),
            "logs": self.logs,
        }


def configure_logging(level: Optional[str] = None):
    """Attach a console handler to the package logger (level from settings by default)."""
    level = level or settings.LOG_LEVEL
    handler = logging.StreamHandler()
    handler.setFormatter(
        logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s")
    )
    logger.addHandler(handler)
    logger.setLevel(level.upper())
