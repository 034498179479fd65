"""Remote report API collaborators"""

from .report_client import ReportClient
from .status_poller import StatusPoller

__all__ = ["ReportClient", "StatusPoller"]
