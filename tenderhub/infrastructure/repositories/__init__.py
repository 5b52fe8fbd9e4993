from tenderhub.infrastructure.repositories.bid_repository import BidRepository
from tenderhub.infrastructure.repositories.directory_repository import DirectoryRepository
from tenderhub.infrastructure.repositories.notification_repository import NotificationRepository
from tenderhub.infrastructure.repositories.tender_repository import TenderRepository

__all__ = [
    "BidRepository",
    "DirectoryRepository",
    "NotificationRepository",
    "TenderRepository",
]
