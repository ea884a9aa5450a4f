import logging
from functools import wraps

from flask import Blueprint, Response, current_app, jsonify, request, send_file
from flask_login import current_user, login_required

from .. import limiter
from ..clock import get_clock
from ..errors import AccessDenied
from ..models.user import ADMIN, SUPERADMIN
from ..services import contracts, export, renderer, signatures
from ..services.listing import ensure_can_access, list_contracts, present_contract, rate_lookup_for
from ..services.status import project_status

logger = logging.getLogger(__name__)

teaching_contracts_bp = Blueprint('teaching_contracts', __name__)


def roles_required(*names):
    def decorator(view):
        @wraps(view)
        def wrapped(*args, **kwargs):
            if not current_user.has_role(*names):
                raise AccessDenied("You are not authorized to perform this action")
            return view(*args, **kwargs)
        return wrapped
    return decorator


def _filters():
    return {
        'academic_year': request.args.get('academic_year', '', type=str).strip(),
        'term': request.args.get('term', '', type=str).strip(),
        'status': request.args.get('status', '', type=str).strip(),
        'q': request.args.get('q', '', type=str).strip(),
    }


def _load_visible(contract_id):
    contract = contracts.get_contract(contract_id)
    ensure_can_access(current_user, contract)
    return contract


# list of the contracts
@teaching_contracts_bp.route('/', methods=['GET'], strict_slashes=False)
@login_required
def index():
    """
    List visible contracts. ``status`` takes a stored status (DRAFT, LECTURER_SIGNED,
    MANAGEMENT_SIGNED, COMPLETED), matched regardless of end date, or a display
    status (WAITING_LECTURER, WAITING_MANAGEMENT, CONTRACT_ENDED).
    """
    page = request.args.get('page', 1, type=int)
    limit = request.args.get('limit', current_app.config['CONTRACTS_PER_PAGE'], type=int)
    result = list_contracts(current_user, _filters(), page, limit, get_clock().today())
    return jsonify(result)


@teaching_contracts_bp.route('/', methods=['POST'], strict_slashes=False)
@login_required
@roles_required(ADMIN, SUPERADMIN)
def create():
    contract = contracts.create_contract(current_user, request.get_json(silent=True))
    return jsonify({'id': contract.id, 'status': contract.status}), 201


@teaching_contracts_bp.route('/export', methods=['GET'])
@login_required
def export_excel():
    rows = export.contract_rows(
        current_user, _filters(), get_clock().today(), current_app.config['USD_TO_KHR']
    )
    output = export.build_workbook(rows)
    filename = f"Teaching_Contracts_{get_clock().today().strftime('%Y%m%d')}.xlsx"
    return send_file(output, download_name=filename, as_attachment=True,
                     mimetype='application/vnd.openxmlformats-officedocument.spreadsheetml.sheet')


@teaching_contracts_bp.route('/<int:contract_id>', methods=['GET'])
@login_required
def view(contract_id):
    contract = _load_visible(contract_id)
    return jsonify(present_contract(contract, get_clock().today(), rate_lookup_for(current_user)))


@teaching_contracts_bp.route('/<int:contract_id>/pdf', methods=['GET'])
@login_required
def pdf(contract_id):
    _load_visible(contract_id)
    data = renderer.render_contract(contract_id)
    return Response(
        data,
        mimetype='application/pdf',
        headers={'Content-Disposition': f'inline; filename="contract_{contract_id}.pdf"'},
    )


@teaching_contracts_bp.route('/<int:contract_id>/signature', methods=['POST'])
@login_required
@limiter.limit(lambda: current_app.config.get('SIGNATURE_RATE_LIMIT', '30 per minute'))
def upload_signature(contract_id):
    contract = signatures.submit_signature(
        contract_id,
        request.form.get('who', ''),
        request.files.get('file'),
        current_user,
    )
    return jsonify({
        'message': 'Signature uploaded',
        'status': contract.status,
        'display_status': project_status(contract.status, contract.end_date, get_clock().today()).value,
    })


@teaching_contracts_bp.route('/<int:contract_id>/status', methods=['PATCH'])
@login_required
@roles_required(ADMIN, SUPERADMIN)
def update_status(contract_id):
    _load_visible(contract_id)
    body = request.get_json(silent=True) or {}
    contract = contracts.override_status(contract_id, body.get('status'))
    return jsonify({'message': 'Updated', 'status': contract.status})


@teaching_contracts_bp.route('/<int:contract_id>', methods=['DELETE'])
@login_required
@roles_required(ADMIN, SUPERADMIN)
def delete(contract_id):
    _load_visible(contract_id)
    contracts.delete_contract(contract_id)
    return jsonify({'message': 'Deleted'})
