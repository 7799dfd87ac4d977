from notaryflow.models.person import Person, PersonRole  # noqa: F401
from notaryflow.models.custody import (  # noqa: F401
    OPEN_STATUSES,
    TERMINAL_STATUSES,
    CustodyLedgerEntry,
    CustodyRequest,
    CustodyRequestStatus,
    Document,
    DocumentStatus,
    Notification,
    NotificationPriority,
)
