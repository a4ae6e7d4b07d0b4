from .action_log_repository import ActionLogRepository
from .base import WriteConflict
from .directory_repository import DirectoryRepository
from .history_repository import HistoryRepository
from .payment_request_repository import PaymentRequestRepository

__all__ = [
    "ActionLogRepository",
    "DirectoryRepository",
    "HistoryRepository",
    "PaymentRequestRepository",
    "WriteConflict",
]
