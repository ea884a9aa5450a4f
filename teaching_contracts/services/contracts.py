"""
Contract store: creation, lookup, deletion and the signature state machine.

    DRAFT             --lecturer-->   LECTURER_SIGNED
    DRAFT             --management--> MANAGEMENT_SIGNED
    LECTURER_SIGNED   --management--> COMPLETED
    MANAGEMENT_SIGNED --lecturer-->   COMPLETED

COMPLETED is terminal for signatures. Only DRAFT contracts can be deleted.
"""
import logging
from datetime import datetime

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from .. import db
from ..errors import AccessDenied, AlreadyCompleted, InvalidState, NotFound, ValidationError
from ..models.catalog import ClassGroup, Course
from ..models.teaching_contract import ContractStatus, TeachingContract, TeachingContractCourse
from ..models.user import ADMIN, LECTURER, SUPERADMIN, User
from . import storage

logger = logging.getLogger(__name__)

SIGNER_ROLES = ("lecturer", "management")

_TRANSITIONS = {
    (ContractStatus.DRAFT, "lecturer"): ContractStatus.LECTURER_SIGNED,
    (ContractStatus.DRAFT, "management"): ContractStatus.MANAGEMENT_SIGNED,
    (ContractStatus.LECTURER_SIGNED, "lecturer"): ContractStatus.LECTURER_SIGNED,
    (ContractStatus.LECTURER_SIGNED, "management"): ContractStatus.COMPLETED,
    (ContractStatus.MANAGEMENT_SIGNED, "lecturer"): ContractStatus.COMPLETED,
    (ContractStatus.MANAGEMENT_SIGNED, "management"): ContractStatus.MANAGEMENT_SIGNED,
}


def next_status(current, role):
    """Status after ``role`` signs a contract currently in ``current``."""
    current = ContractStatus(current)
    if role not in SIGNER_ROLES:
        raise ValidationError("Invalid signer role", errors={"who": f"must be one of {', '.join(SIGNER_ROLES)}"})
    if current == ContractStatus.COMPLETED:
        raise AlreadyCompleted("Contract is already completed; signatures can no longer change")
    return _TRANSITIONS[(current, role)]


def parse_date(value, field, errors):
    if value in (None, ''):
        return None
    try:
        return datetime.strptime(str(value).strip(), '%Y-%m-%d').date()
    except ValueError:
        errors[field] = "must be a date in YYYY-MM-DD format"
        return None


def _parse_hours(value, field, errors):
    if value is None or value == '':
        errors[field] = "is required"
        return None
    if isinstance(value, bool):
        hours = None
    elif isinstance(value, int):
        hours = value
    elif isinstance(value, float):
        hours = int(value) if value.is_integer() else None
    else:
        try:
            hours = int(str(value).strip())
        except ValueError:
            hours = None
    if hours is None or hours < 0:
        errors[field] = "must be a nonnegative integer"
        return None
    return hours


def _parse_id(value, field, errors, required=True):
    if value in (None, ''):
        if required:
            errors[field] = "is required"
        return None
    try:
        parsed = int(value)
    except (TypeError, ValueError):
        errors[field] = "must be an integer id"
        return None
    return parsed


def _clean(value):
    if value is None:
        return None
    value = str(value).strip()
    return value or None


def validate_payload(payload):
    """Check the shape of a creation request. Returns cleaned header and items."""
    if not isinstance(payload, dict):
        raise ValidationError("Request body must be a JSON object")

    errors = {}
    lecturer_id = _parse_id(payload.get('lecturer_user_id', payload.get('lecturer_id')), 'lecturer_user_id', errors)
    academic_year = _clean(payload.get('academic_year'))
    term = _clean(payload.get('term'))
    if not academic_year:
        errors['academic_year'] = "is required"
    if not term:
        errors['term'] = "is required"
    start_date = parse_date(payload.get('start_date'), 'start_date', errors)
    end_date = parse_date(payload.get('end_date'), 'end_date', errors)
    if start_date and end_date and end_date < start_date:
        errors['end_date'] = "must not be before start_date"

    header = {
        'lecturer_user_id': lecturer_id,
        'academic_year': academic_year,
        'term': term,
        'year_level': _clean(payload.get('year_level')),
        'start_date': start_date,
        'end_date': end_date,
    }

    courses = payload.get('courses')
    items = []
    if not isinstance(courses, list) or not courses:
        errors['courses'] = "at least one course is required"
    else:
        for index, raw in enumerate(courses):
            prefix = f"courses[{index}]"
            if not isinstance(raw, dict):
                errors[prefix] = "must be an object"
                continue
            items.append({
                'course_id': _parse_id(raw.get('course_id'), f"{prefix}.course_id", errors),
                'class_id': _parse_id(raw.get('class_id'), f"{prefix}.class_id", errors, required=False),
                'course_name': _clean(raw.get('course_name')),
                'year_level': _clean(raw.get('year_level')) or header['year_level'],
                'term': _clean(raw.get('term')) or term,
                'academic_year': _clean(raw.get('academic_year')) or academic_year,
                'hours': _parse_hours(raw.get('hours'), f"{prefix}.hours", errors),
            })

    if errors:
        raise ValidationError("Invalid teaching contract", errors=errors)
    return header, items


def create_contract(creator, payload):
    """Create a DRAFT contract with all of its line items, or nothing at all."""
    header, items = validate_payload(payload)

    lecturer = db.session.get(User, header['lecturer_user_id'])
    if lecturer is None:
        raise NotFound(f"Lecturer {header['lecturer_user_id']} not found")
    if not lecturer.has_role(LECTURER):
        raise ValidationError("Invalid teaching contract", errors={'lecturer_user_id': "user is not a lecturer"})

    course_ids = {item['course_id'] for item in items}
    courses = {c.id: c for c in Course.query.filter(Course.id.in_(course_ids)).all()}
    missing = sorted(course_ids - set(courses))
    if missing:
        raise NotFound(f"Course(s) not found: {', '.join(str(i) for i in missing)}")

    class_ids = {item['class_id'] for item in items if item['class_id'] is not None}
    if class_ids:
        found = {c.id for c in ClassGroup.query.filter(ClassGroup.id.in_(class_ids)).all()}
        missing = sorted(class_ids - found)
        if missing:
            raise NotFound(f"Class(es) not found: {', '.join(str(i) for i in missing)}")

    if creator.has_role(ADMIN) and not creator.has_role(SUPERADMIN):
        foreign = [c.id for c in courses.values() if c.dept_id != creator.department_id]
        if foreign:
            raise AccessDenied("Courses outside your department cannot be contracted")

    contract = TeachingContract(
        lecturer_user_id=lecturer.id,
        created_by=creator.id,
        status=ContractStatus.DRAFT.value,
        **{k: v for k, v in header.items() if k != 'lecturer_user_id'}
    )
    for item in items:
        item['course_name'] = item['course_name'] or courses[item['course_id']].course_name
        contract.courses.append(TeachingContractCourse(**item))

    try:
        db.session.add(contract)
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        logger.error(f"Error creating teaching contract for lecturer {lecturer.id}: {str(e)}")
        raise
    logger.info(f"Teaching contract {contract.id} created for lecturer {lecturer.id} with {len(items)} course(s)")
    return contract


def get_contract(contract_id):
    contract = db.session.get(TeachingContract, contract_id)
    if contract is None:
        raise NotFound(f"Contract {contract_id} not found")
    return contract


def _locked_status(contract_id):
    return (
        db.session.query(TeachingContract.status)
        .filter(TeachingContract.id == contract_id)
        .with_for_update()
        .scalar()
    )


def apply_signature(contract_id, role, path, signed_at):
    """
    Record ``role``'s signature and move the contract along the state machine.

    The status is read under a row lock and written back with a
    compare-and-swap on the value read, so two racing requests cannot both
    pass the COMPLETED guard with stale state.
    """
    retries = max(1, current_app.config.get("SIGNATURE_CAS_RETRIES", 3))
    for attempt in range(retries):
        current = _locked_status(contract_id)
        if current is None:
            db.session.rollback()
            raise NotFound(f"Contract {contract_id} not found")
        try:
            new = next_status(current, role)
        except InvalidState:
            db.session.rollback()
            raise
        values = {
            TeachingContract.status: new.value,
            getattr(TeachingContract, f"{role}_signature_path"): path,
            getattr(TeachingContract, f"{role}_signed_at"): signed_at,
            TeachingContract.updated_at: signed_at,
        }
        updated = (
            TeachingContract.query
            .filter(TeachingContract.id == contract_id, TeachingContract.status == current)
            .update(values, synchronize_session=False)
        )
        if updated == 1:
            db.session.commit()
            logger.info(f"Contract {contract_id}: {role} signed, {current} -> {new.value}")
            return get_contract(contract_id)
        db.session.rollback()
        logger.warning(f"Contract {contract_id}: status changed while signing (attempt {attempt + 1})")
    raise InvalidState(f"Contract {contract_id} changed concurrently; retry the signature")


def override_status(contract_id, status):
    """Admin correction of the persisted status. Signature images are left alone."""
    try:
        new = ContractStatus(str(status or '').upper())
    except ValueError:
        raise ValidationError(
            "Invalid status",
            errors={'status': f"must be one of {', '.join(s.value for s in ContractStatus)}"},
        )
    contract = get_contract(contract_id)
    previous = contract.status
    contract.status = new.value
    db.session.commit()
    logger.info(f"Contract {contract_id}: status overridden {previous} -> {new.value}")
    return contract


def delete_contract(contract_id):
    current = _locked_status(contract_id)
    if current is None:
        db.session.rollback()
        raise NotFound(f"Contract {contract_id} not found")
    if current != ContractStatus.DRAFT.value:
        db.session.rollback()
        raise InvalidState("Only DRAFT contracts can be deleted")

    contract = get_contract(contract_id)
    files = [contract.pdf_path, contract.lecturer_signature_path, contract.management_signature_path]
    try:
        db.session.delete(contract)
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        logger.error(f"Error deleting contract {contract_id}: {str(e)}")
        raise
    storage.remove_blobs(*files)
    logger.info(f"Contract {contract_id} deleted")
