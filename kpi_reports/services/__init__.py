from .intake import ReportRequestService
from .status import ReportStatusService
from .history import ReportHistoryService

__all__ = ['ReportRequestService', 'ReportStatusService', 'ReportHistoryService']
