"""
Role-scoped retrieval of teaching contracts.

- lecturer: only contracts where they are the lecturer
- admin / management: contracts with a course from their own department
- superadmin: everything
"""
import logging
import math

from flask import current_app
from sqlalchemy import and_, false, or_

from .. import db
from ..errors import AccessDenied, ValidationError
from ..models.catalog import Course
from ..models.teaching_contract import ContractStatus, TeachingContract, TeachingContractCourse
from ..models.user import ADMIN, LECTURER, MANAGEMENT, SUPERADMIN, User
from .rates import resolve_rate_for_lecturer
from .status import DisplayStatus, persisted_statuses_for, project_status

logger = logging.getLogger(__name__)

RATE_VISIBLE_ROLES = (ADMIN, MANAGEMENT, SUPERADMIN)


def _department_clause(department_id):
    return (
        db.session.query(TeachingContractCourse.id)
        .join(Course, Course.id == TeachingContractCourse.course_id)
        .filter(
            TeachingContractCourse.contract_id == TeachingContract.id,
            Course.dept_id == department_id,
        )
        .exists()
    )


def scope_query(query, caller):
    if caller.has_role(SUPERADMIN):
        return query
    if caller.has_role(LECTURER):
        return query.filter(TeachingContract.lecturer_user_id == caller.id)
    if caller.has_role(ADMIN, MANAGEMENT):
        if caller.department_id is None:
            logger.warning(f"User {caller.id} has no department; returning no contracts")
            return query.filter(false())
        return query.filter(_department_clause(caller.department_id))
    raise AccessDenied("Your role cannot view teaching contracts")


def ensure_can_access(caller, contract):
    if caller.has_role(SUPERADMIN):
        return
    if caller.has_role(LECTURER):
        if contract.lecturer_user_id == caller.id:
            return
    elif caller.has_role(ADMIN, MANAGEMENT):
        if caller.department_id is not None and any(
            item.course is not None and item.course.dept_id == caller.department_id
            for item in contract.courses
        ):
            return
    logger.warning(f"User {caller.id} denied access to contract {contract.id}")
    raise AccessDenied("You are not authorized to access this contract")


def _status_clause(status, today):
    """
    Persisted names (DRAFT, LECTURER_SIGNED, MANAGEMENT_SIGNED, COMPLETED) match the
    stored status and ignore the end date, so an ended contract still matches its
    stored status. The remaining display names (WAITING_LECTURER,
    WAITING_MANAGEMENT, CONTRACT_ENDED) match what ``project_status`` shows.
    """
    value = str(status).strip().upper()
    if value in ContractStatus.__members__:
        return TeachingContract.status == value
    if value in DisplayStatus.__members__:
        ended = TeachingContract.end_date < today
        if value == DisplayStatus.CONTRACT_ENDED.value:
            return ended
        not_ended = or_(TeachingContract.end_date.is_(None), TeachingContract.end_date >= today)
        return and_(TeachingContract.status.in_(persisted_statuses_for(value)), not_ended)
    raise ValidationError("Invalid status filter", errors={'status': f"unknown status '{status}'"})


def apply_filters(query, filters, today):
    filters = filters or {}
    if filters.get('academic_year'):
        query = query.filter(TeachingContract.academic_year == filters['academic_year'])
    if filters.get('term'):
        query = query.filter(TeachingContract.term == filters['term'])
    if filters.get('status'):
        query = query.filter(_status_clause(filters['status'], today))
    search = (filters.get('q') or '').strip()
    if search:
        query = query.join(User, User.id == TeachingContract.lecturer_user_id).filter(
            (User.display_name.ilike(f'%{search}%')) |
            (User.username.ilike(f'%{search}%')) |
            (User.email.ilike(f'%{search}%'))
        )
    return query


def build_query(caller, filters, today):
    return apply_filters(scope_query(TeachingContract.query, caller), filters, today)


def present_contract(contract, today, rate_lookup=None):
    data = contract.to_dict()
    data['display_status'] = project_status(contract.status, contract.end_date, today).value
    if rate_lookup is not None:
        rate = rate_lookup(contract.lecturer)
        data['hourly_rate_usd'] = float(rate) if rate is not None else None
    return data


def _cached_rate_lookup():
    cache = {}

    def lookup(lecturer):
        if lecturer is None:
            return None
        if lecturer.id not in cache:
            cache[lecturer.id] = resolve_rate_for_lecturer(lecturer)
        return cache[lecturer.id]
    return lookup


def rate_lookup_for(caller):
    return _cached_rate_lookup() if caller.has_role(*RATE_VISIBLE_ROLES) else None


def clamp_paging(page, limit):
    default = current_app.config.get('CONTRACTS_PER_PAGE', 10)
    cap = current_app.config.get('CONTRACTS_MAX_PER_PAGE', 100)
    page = page if page and page > 0 else 1
    limit = limit if limit and limit > 0 else default
    return page, min(limit, cap)


def list_contracts(caller, filters, page, limit, today):
    page, limit = clamp_paging(page, limit)
    query = build_query(caller, filters, today)

    total = query.order_by(None).count()
    rows = (
        query.order_by(TeachingContract.created_at.desc(), TeachingContract.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    rate_lookup = rate_lookup_for(caller)
    total_pages = math.ceil(total / limit) if total else 0
    return {
        'data': [present_contract(row, today, rate_lookup) for row in rows],
        'page': page,
        'limit': limit,
        'total': total,
        'total_pages': total_pages,
        'has_more': page < total_pages,
    }
