"""
Hourly rate lookup against recruitment candidates.

Contracts and candidates share no foreign key, so the join is by cleaned
display name and then by email. The lookup is best effort: any failure
degrades to "rate unknown" (None) and is logged, never raised. A failed
query rolls the session back so the caller can keep writing.
"""
import logging
import re
from decimal import Decimal, InvalidOperation

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError

from .. import db
from ..errors import RateResolutionError
from ..models.candidate import Candidate

logger = logging.getLogger(__name__)

HONORIFIC_RE = re.compile(r"^(mr|ms|mrs|dr|prof|professor|miss)\.?\s+", re.IGNORECASE)
_RATE_NOISE_RE = re.compile(r"[^0-9.\-]")


def normalize_lecturer_name(name):
    if not name:
        return ""
    cleaned = HONORIFIC_RE.sub("", str(name).strip())
    return re.sub(r"\s+", " ", cleaned).strip()


def parse_rate(raw):
    """Parse a stored rate such as "25", "$25.50" or "25 USD" into a Decimal.

    Returns None for blank, unparseable or negative values.
    """
    if raw is None:
        return None
    if isinstance(raw, (int, float, Decimal)):
        text = str(raw)
    else:
        text = _RATE_NOISE_RE.sub("", str(raw))
    if not text:
        return None
    try:
        value = Decimal(text)
    except (InvalidOperation, ValueError):
        return None
    if not value.is_finite() or value < 0:
        return None
    return value


def find_candidate(display_name, email):
    cleaned = normalize_lecturer_name(display_name)
    try:
        candidate = None
        if cleaned:
            candidate = (
                Candidate.query
                .filter(func.lower(func.trim(Candidate.full_name)) == cleaned.lower())
                .order_by(Candidate.id.asc())
                .first()
            )
        if candidate is None and email:
            candidate = (
                Candidate.query
                .filter(Candidate.email == email)
                .order_by(Candidate.id.asc())
                .first()
            )
        return candidate
    except SQLAlchemyError as e:
        db.session.rollback()
        raise RateResolutionError(f"Candidate lookup failed: {str(e)}") from e


def resolve_hourly_rate(display_name, email):
    try:
        candidate = find_candidate(display_name, email)
    except RateResolutionError as e:
        logger.warning(f"Hourly rate lookup failed for '{display_name}' <{email}>: {e.message}")
        return None
    if candidate is None:
        logger.debug(f"No candidate record matches lecturer '{display_name}' <{email}>")
        return None
    rate = parse_rate(candidate.hourly_rate)
    if rate is None:
        logger.info(f"Candidate {candidate.id} has unusable hourly rate {candidate.hourly_rate!r}")
    return rate


def resolve_rate_for_lecturer(lecturer):
    if lecturer is None:
        return None
    return resolve_hourly_rate(lecturer.display_name or lecturer.username, lecturer.email)
