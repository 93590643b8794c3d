"""Assemble normalized appointments from raw matches."""

from collections.abc import Iterable
from datetime import tzinfo

from src.appointy_sync.errors import UnresolvedDate
from src.appointy_sync.logging import get_logger
from src.appointy_sync.models import Appointment, RawMatch
from src.appointy_sync.normalizer import normalize

log = get_logger(__name__)

DEFAULT_TITLE = "Mathnasium Session"
DEFAULT_LOCATION = "Mathnasium of Portland"


def build_appointments(
    matches: Iterable[RawMatch],
    *,
    default_title: str = DEFAULT_TITLE,
    location: str = DEFAULT_LOCATION,
    tz: tzinfo | None = None,
) -> list[Appointment]:
    """Normalize matches into appointments.

    Candidates whose date or time can't be resolved are dropped without
    failing the batch. Appointments with the same title, start and end are
    indistinguishable downstream (they get the same UID), so only the first
    is kept.

    Args:
        matches: RawMatch candidates in page order.
        default_title: Title used when none was found on the page.
        location: Location written on every appointment.
        tz: Time zone the page's wall-clock times are in.

    Returns:
        Appointments in page order.
    """
    appointments: list[Appointment] = []
    seen: set[tuple] = set()

    for match in matches:
        try:
            start, end = normalize(match, tz)
        except UnresolvedDate as e:
            log.debug("match_dropped", date=match.date_text, reason=str(e))
            continue

        title = match.title or default_title
        key = (title, start, end)
        if key in seen:
            continue
        seen.add(key)

        appointments.append(
            Appointment(title=title, start=start, end=end, location=location)
        )

    return appointments
