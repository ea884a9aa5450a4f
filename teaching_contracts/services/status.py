"""Display status derived from persisted status plus the contract end date."""
import enum
from datetime import datetime

from ..models.teaching_contract import ContractStatus


class DisplayStatus(str, enum.Enum):
    DRAFT = "DRAFT"
    WAITING_LECTURER = "WAITING_LECTURER"
    WAITING_MANAGEMENT = "WAITING_MANAGEMENT"
    COMPLETED = "COMPLETED"
    CONTRACT_ENDED = "CONTRACT_ENDED"


_PERSISTED_TO_DISPLAY = {
    ContractStatus.DRAFT.value: DisplayStatus.WAITING_LECTURER,
    ContractStatus.MANAGEMENT_SIGNED.value: DisplayStatus.WAITING_LECTURER,
    ContractStatus.LECTURER_SIGNED.value: DisplayStatus.WAITING_MANAGEMENT,
    ContractStatus.COMPLETED.value: DisplayStatus.COMPLETED,
}


def _as_date(value):
    if isinstance(value, datetime):
        return value.date()
    return value


def project_status(persisted_status, end_date, today):
    """
    Map (persisted status, end date, today) to the status users see.

    An end date strictly before today wins over any signature progress.
    Comparison is on dates only. Unknown persisted values fall back to DRAFT.
    """
    end = _as_date(end_date)
    if end is not None and end < _as_date(today):
        return DisplayStatus.CONTRACT_ENDED
    key = persisted_status.value if isinstance(persisted_status, ContractStatus) else persisted_status
    return _PERSISTED_TO_DISPLAY.get(key, DisplayStatus.DRAFT)


def persisted_statuses_for(display_status):
    """Persisted statuses that project to ``display_status`` while not ended."""
    display = DisplayStatus(display_status)
    return [status for status, shown in _PERSISTED_TO_DISPLAY.items() if shown == display]
