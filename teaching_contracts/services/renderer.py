"""
Bilingual teaching contract document.

The English and Khmer pages are Jinja2 templates rendered with autoescaping
and a finalizer that drops control characters, joined with a page break and
printed to PDF by WeasyPrint on a worker thread. The worker writes the PDF to
its stable path itself, so a render that outlives its request still refreshes
the cached file.
"""
import base64
import logging
import mimetypes
import os
import re
import threading
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FutureTimeoutError
from decimal import Decimal

from flask import current_app
from jinja2 import TemplateError, TemplateNotFound
from markupsafe import Markup

from .. import db
from ..clock import get_clock
from ..errors import RenderEngineError, RenderTemplateError
from . import storage
from .contracts import get_contract
from .formatting import (
    format_date, format_exchange_rate, format_khr, format_rate, format_usd, riel_to_words, round_riel,
    to_khmer_digits,
)
from .rates import resolve_rate_for_lecturer

logger = logging.getLogger(__name__)

ENGLISH_TEMPLATE = "contracts/lecturer_contract_en.html"
KHMER_TEMPLATE = "contracts/lecturer_contract_kh.html"
DOCUMENT_TEMPLATE = "contracts/contract_document.html"

_CONTROL_CHARS_RE = re.compile(r"[\x00-\x08\x0b-\x1f\x7f-\x9f]")

_executor = None
_executor_lock = threading.Lock()


def strip_control_chars(value):
    if isinstance(value, str) and not isinstance(value, Markup):
        return _CONTROL_CHARS_RE.sub("", value)
    return value


def compute_totals(items, hourly_rate, exchange_rate):
    total_hours = sum(item.hours or 0 for item in items)
    rate = hourly_rate if hourly_rate is not None else Decimal("0")
    total_usd = Decimal(total_hours) * Decimal(rate)
    total_khr = round_riel(total_usd * Decimal(str(exchange_rate)))
    return total_hours, total_usd, total_khr


def _data_uri(path):
    if not path or not os.path.exists(path):
        return None
    mime = mimetypes.guess_type(path)[0] or "image/png"
    with open(path, "rb") as fh:
        encoded = base64.b64encode(fh.read()).decode("ascii")
    return f"data:{mime};base64,{encoded}"


def build_context(contract, hourly_rate, today, exchange_rate):
    lecturer = contract.lecturer
    lecturer_name = ''
    if lecturer is not None:
        lecturer_name = lecturer.display_name or lecturer.email or ''
    total_hours, total_usd, total_khr = compute_totals(contract.courses, hourly_rate, exchange_rate)
    start = contract.start_date or today

    return {
        'contract_id': str(contract.id),
        'lecturer_name': lecturer_name or 'Lecturer',
        'start_date': start.isoformat(),
        'start_date_display': format_date(start),
        'end_date': contract.end_date.isoformat() if contract.end_date else '',
        'end_date_display': format_date(contract.end_date),
        'has_period': bool(contract.start_date and contract.end_date),
        'subject': contract.courses[0].course_name if contract.courses else 'Course',
        'term': contract.term,
        'academic_year': contract.academic_year,
        'year_level': contract.year_level or '',
        'items': [
            {
                'course_name': item.course_name,
                'year_level': item.year_level or '',
                'term': item.term or '',
                'academic_year': item.academic_year or '',
                'hours': str(item.hours or 0),
            }
            for item in contract.courses
        ],
        'total_hours': str(total_hours),
        'hourly_rate': format_rate(hourly_rate),
        'total_usd': format_usd(total_usd) if hourly_rate is not None else '',
        'total_khr': format_khr(total_khr) if hourly_rate is not None else '',
        'total_khr_plain': str(total_khr) if hourly_rate is not None else '',
        'total_khr_words': riel_to_words(total_khr) if hourly_rate is not None else '',
        'exchange_rate': format_exchange_rate(exchange_rate),
        'sign_day': str(today.day),
        'sign_month': str(today.month),
        'sign_year': str(today.year),
        'sign_date': today.isoformat(),
    }


def khmer_context(context):
    """Copy of ``context`` with every ASCII digit turned into a Khmer digit."""
    def convert(value):
        if isinstance(value, str):
            return to_khmer_digits(value)
        if isinstance(value, list):
            return [convert(v) for v in value]
        if isinstance(value, dict):
            return {k: convert(v) for k, v in value.items()}
        return value
    return convert(context)


def _template_env():
    # Own template cache: the shared one would hand back templates compiled without the finalizer.
    env = current_app.extensions.get("contract_jinja_env")
    if env is None:
        env = current_app.jinja_env.overlay(finalize=strip_control_chars, autoescape=True, cache_size=50)
        current_app.extensions["contract_jinja_env"] = env
    return env


def render_html(contract, context, images=None):
    env = _template_env()
    images = images or {}
    try:
        english = env.get_template(ENGLISH_TEMPLATE).render(**context, **images)
        khmer = env.get_template(KHMER_TEMPLATE).render(**khmer_context(context), **images)
        return env.get_template(DOCUMENT_TEMPLATE).render(
            english_page=Markup(english), khmer_page=Markup(khmer), contract_id=contract.id
        )
    except TemplateNotFound as e:
        logger.error(f"Contract {contract.id}: template missing: {e.name}")
        raise RenderTemplateError(f"Contract template not found: {e.name}", contract_id=contract.id)
    except TemplateError as e:
        logger.error(f"Contract {contract.id}: template error: {str(e)}")
        raise RenderTemplateError("Contract template could not be rendered", contract_id=contract.id)


def html_to_pdf(html, base_url=None):
    from weasyprint import HTML

    return HTML(string=html, base_url=base_url).write_pdf()


def _render_and_store(html, path, base_url):
    pdf = html_to_pdf(html, base_url=base_url)
    storage.write_blob(path, pdf)
    return pdf


def get_executor():
    global _executor
    with _executor_lock:
        if _executor is None:
            workers = current_app.config.get("RENDER_WORKERS", 2)
            _executor = ThreadPoolExecutor(max_workers=workers, thread_name_prefix="contract-render")
        return _executor


def render_contract(contract_id):
    """Render, persist and return the PDF bytes for ``contract_id``."""
    contract = get_contract(contract_id)
    clock = get_clock()
    today = clock.today()
    config = current_app.config

    hourly_rate = resolve_rate_for_lecturer(contract.lecturer)
    context = build_context(contract, hourly_rate, today, config.get("USD_TO_KHR", 4100))
    images = {
        'logo_src': _data_uri(config.get("CONTRACT_LOGO_PATH")),
        'lecturer_signature_src': _data_uri(contract.lecturer_signature_path),
        'management_signature_src': _data_uri(contract.management_signature_path),
    }
    html = render_html(contract, context, images)

    path = storage.document_path(contract.id)
    timeout = config.get("RENDER_TIMEOUT_SECONDS", 30)
    future = get_executor().submit(_render_and_store, html, path, current_app.root_path)
    try:
        pdf = future.result(timeout=timeout)
    except FutureTimeoutError:
        logger.error(f"Contract {contract.id}: PDF render exceeded {timeout}s")
        raise RenderEngineError("PDF rendering timed out", contract_id=contract.id)
    except Exception as e:
        logger.exception(f"Contract {contract.id}: PDF render failed: {str(e)}")
        raise RenderEngineError("PDF rendering failed", contract_id=contract.id)

    contract.pdf_path = path
    contract.pdf_generated_at = clock.now()
    db.session.commit()
    logger.info(f"Contract {contract.id}: rendered {len(pdf)} bytes (rate={hourly_rate}, hours={context['total_hours']})")
    return pdf
