from __future__ import annotations

import io
from dataclasses import replace
from datetime import date, datetime
from functools import wraps
from pathlib import Path

from flask import (
    Blueprint,
    abort,
    current_app,
    g,
    jsonify,
    redirect,
    render_template,
    request,
    send_file,
    url_for,
)

from vqcenter.constants import (
    ACTING_SECTIONS,
    ALL_AREAS,
    AREAS,
    CHART_SCOPE_SELECTED,
    CHART_SCOPES,
    DOWNTIME_REASONS,
    MODELS,
    PRESET_TIME_SLOTS,
    REPORT_PERIODS,
    ROLE_MANAGER,
    ROLE_OPERATOR,
    area_display_name,
    normalize_area_filter,
)
from vqcenter.entry import (
    DuplicateEntryError,
    EntryValidationError,
    apply_edit,
    build_downtime_record,
    build_inspection_record,
    check_duplicate,
    normalize_vin,
)
from vqcenter.main.pdf_utils import PdfGenerationError, render_html_to_pdf
from vqcenter.records import (
    KIND_DEFECT,
    KIND_DOWNTIME,
    RECORD_KINDS,
    STATUS_NOT_OK,
    STATUS_OK,
)
from vqcenter.reports.charts import dashboard_charts
from vqcenter.reports.chat import build_chat_message, share_url
from vqcenter.reports.excel import build_workbook, workbook_filename
from vqcenter.reports.slides import build_presentation, deck_filename
from vqcenter.statistics import (
    StatisticsFilter,
    compute_statistics,
    employee_history,
    filter_records,
)

main_bp = Blueprint('main', __name__)

CUSTOM_PERIOD = 'CUSTOM'
_CUSTOM_PERIOD_LABELS = ('Personalizado', '自定义')
_XLSX_MIMETYPE = 'application/vnd.openxmlformats-officedocument.spreadsheetml.sheet'
_PPTX_MIMETYPE = 'application/vnd.openxmlformats-officedocument.presentationml.presentation'
_DOCUMENT_FORMATS = ('pdf', 'html')
_DASHBOARD_FORMATS = ('xlsx', 'pptx', 'chat') + _DOCUMENT_FORMATS


def _load_report_css() -> str:
    """Load the shared report stylesheet so it can be inlined."""

    static_folder = current_app.static_folder or ''
    css_path = Path(static_folder) / 'css' / 'report.css'
    try:
        return css_path.read_text(encoding='utf-8')
    except OSError as exc:  # pragma: no cover - log & fall back to default styling
        current_app.logger.warning("Unable to load report CSS: %s", exc)
    return ""


def _role_required(allowed_roles: set[str]):
    def decorator(view):
        @wraps(view)
        def wrapped_view(**kwargs):
            state = g.get('app_state')
            if state is None:
                if request.path.startswith('/api/'):
                    abort(401, description="Authentication required")
                return redirect(url_for('auth.login'))
            if state.role not in allowed_roles:
                abort(403)
            return view(**kwargs)

        return wrapped_view

    return decorator


login_required = _role_required({ROLE_OPERATOR, ROLE_MANAGER})
manager_required = _role_required({ROLE_MANAGER})


def _store():
    return current_app.config['EVENT_STORE']


def _workspace() -> str:
    return g.app_state.workspace_id


def _now() -> datetime:
    return datetime.now(current_app.config.get('TIMEZONE'))


def _parse_date(value: str | None, default: date) -> date:
    if not value:
        return default
    try:
        return date.fromisoformat(value.strip())
    except ValueError:
        abort(400, description=f"Invalid date: {value}")


def _flag(value) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in {'1', 'true', 'yes', 'on'}
    return bool(value)


def _filters_from_args(args) -> tuple[StatisticsFilter, str]:
    """Build the statistics filter from query parameters.

    Returns the filter and the period key (``CUSTOM`` for explicit dates).
    """

    tz = current_app.config.get('TIMEZONE')
    today = _now().date()
    try:
        area = normalize_area_filter(args.get('area'))
    except ValueError as exc:
        abort(400, description=str(exc))

    chart_scope = (args.get('chart_scope') or CHART_SCOPE_SELECTED).strip().upper()
    if chart_scope not in CHART_SCOPES:
        abort(400, description=f"Invalid chart scope: {chart_scope}")
    vin_query = (args.get('vin') or '').strip()

    period = (args.get('period') or '').strip().upper()
    if period:
        if period not in REPORT_PERIODS:
            abort(400, description=f"Invalid period: {period}")
        filters = StatisticsFilter.for_period(period, today, area=area, tz=tz)
        return replace(filters, vin_query=vin_query, chart_scope=chart_scope), period

    start = _parse_date(args.get('start_date'), today)
    end = _parse_date(args.get('end_date'), today)
    if start > end:
        abort(400, description="start_date must not be after end_date")
    filters = StatisticsFilter(
        start_date=start,
        end_date=end,
        area=area,
        vin_query=vin_query,
        chart_scope=chart_scope,
        tz=tz,
    )
    return filters, CUSTOM_PERIOD


def _snapshot():
    data, error = _store().snapshot(_workspace())
    if error:
        current_app.logger.error("Failed to load workspace %s: %s", _workspace(), error)
        abort(500, description=error)
    return data


def _serialize(record) -> dict:
    return {**record.to_row(), 'kind': record.kind}


def _check_kind(kind: str) -> None:
    if kind not in RECORD_KINDS:
        abort(404, description=f"Unknown record kind: {kind}")


def _request_payload() -> dict:
    payload = request.get_json(silent=True)
    if isinstance(payload, dict):
        return payload
    return request.form.to_dict()


def _list_or_abort(kind: str) -> list:
    records, error = _store().list_records(_workspace(), kind)
    if error:
        abort(500, description=error)
    return records


def _export_format(default: str, allowed: tuple[str, ...] = _DOCUMENT_FORMATS) -> str:
    fmt = (request.args.get('format') or default).strip().lower()
    if fmt not in allowed:
        abort(400, description=f"Unsupported format. Choose {', '.join(allowed)}.")
    return fmt


def _send_document(html: str, fmt: str, filename_stem: str):
    if fmt == 'pdf':
        try:
            pdf = render_html_to_pdf(html, base_url=request.url_root)
        except PdfGenerationError as exc:
            current_app.logger.warning("PDF export failed: %s", exc)
            return jsonify({'message': str(exc)}), 503
        return send_file(
            io.BytesIO(pdf),
            mimetype='application/pdf',
            download_name=f"{filename_stem}.pdf",
            as_attachment=True,
        )
    return send_file(
        io.BytesIO(html.encode('utf-8')),
        mimetype='text/html',
        download_name=f"{filename_stem}.html",
        as_attachment=True,
    )


@main_bp.route('/entry')
@login_required
def entry_home():
    state = g.app_state
    passes, defects, _downtime = _snapshot()
    history = employee_history(passes, defects, state.employee_id) if state.employee_id else []
    return render_template(
        'entry.html',
        areas=AREAS,
        models=MODELS,
        acting_sections=ACTING_SECTIONS,
        preset_slots=PRESET_TIME_SLOTS,
        downtime_reasons=DOWNTIME_REASONS,
        today=_now().date().isoformat(),
        history=history[:50],
    )


@main_bp.route('/dashboard')
@manager_required
def dashboard():
    filters, period = _filters_from_args(request.args)
    passes, defects, downtime = _snapshot()
    stats = compute_statistics(passes, defects, downtime, filters)
    return render_template(
        'dashboard.html',
        stats=stats,
        filters=filters,
        period=period,
        areas=AREAS,
        all_areas=ALL_AREAS,
        area_label=area_display_name(filters.area),
        periods=REPORT_PERIODS,
    )


@main_bp.route('/api/statistics', methods=['GET'])
@manager_required
def api_statistics():
    filters, _period = _filters_from_args(request.args)
    passes, defects, downtime = _snapshot()
    return jsonify(compute_statistics(passes, defects, downtime, filters))


@main_bp.route('/api/workspace/revision', methods=['GET'])
@login_required
def api_workspace_revision():
    revisions = current_app.config['WORKSPACE_REVISIONS']
    return jsonify({'workspace_id': _workspace(), 'revision': revisions.revision(_workspace())})


@main_bp.route('/api/records/<kind>', methods=['GET'])
@login_required
def api_list_records(kind):
    _check_kind(kind)
    return jsonify([_serialize(record) for record in _list_or_abort(kind)])


@main_bp.route('/api/records/<kind>', methods=['POST'])
@login_required
def api_create_record(kind):
    _check_kind(kind)
    payload = _request_payload()
    payload.setdefault('employee_id', g.app_state.employee_id)
    now = _now()
    try:
        if kind == KIND_DOWNTIME:
            record = build_downtime_record(payload, now=now)
        else:
            payload['status'] = STATUS_NOT_OK if kind == KIND_DEFECT else STATUS_OK
            record = build_inspection_record(payload, now=now)
            check_duplicate(
                record,
                _list_or_abort(record.kind),
                confirmed=_flag(payload.get('confirm_duplicate')),
            )
    except DuplicateEntryError as exc:
        return jsonify({'message': str(exc), 'existing': _serialize(exc.existing)}), 409
    except EntryValidationError as exc:
        return jsonify({'message': str(exc)}), 400

    saved, error = _store().add_record(_workspace(), record)
    if error:
        current_app.logger.error("Failed to save %s record: %s", kind, error)
        abort(500, description=error)
    current_app.logger.info(
        "Stored %s record %s in workspace %s", saved.kind, saved.id, _workspace()
    )
    return jsonify(_serialize(saved)), 201


@main_bp.route('/api/records/<kind>/<record_id>', methods=['PUT'])
@login_required
def api_update_record(kind, record_id):
    _check_kind(kind)
    store = _store()
    existing, error = store.get_record(_workspace(), kind, record_id)
    if error:
        abort(500, description=error)
    if existing is None:
        abort(404, description="Record not found")

    payload = _request_payload()
    form = {**existing.to_row(), **payload}
    now = _now()
    moved = False
    try:
        if kind == KIND_DOWNTIME:
            record = replace(
                build_downtime_record(form, now=now, record_id=existing.id),
                timestamp=existing.timestamp,
            )
        else:
            form.setdefault('status', STATUS_NOT_OK if kind == KIND_DEFECT else STATUS_OK)
            record, moved = apply_edit(existing, form, now=now)
            check_duplicate(
                record,
                _list_or_abort(record.kind),
                confirmed=_flag(payload.get('confirm_duplicate')),
                previous=existing,
            )
    except DuplicateEntryError as exc:
        return jsonify({'message': str(exc), 'existing': _serialize(exc.existing)}), 409
    except EntryValidationError as exc:
        return jsonify({'message': str(exc)}), 400

    if moved:
        saved, error = store.add_record(_workspace(), record)
        if not error:
            _removed, error = store.remove_record(_workspace(), kind, existing.id)
    else:
        saved, error = store.update_record(_workspace(), record)
    if error:
        current_app.logger.error("Failed to update %s record %s: %s", kind, record_id, error)
        abort(500, description=error)
    return jsonify({**_serialize(saved), 'moved': moved})


@main_bp.route('/api/records/<kind>/<record_id>', methods=['DELETE'])
@login_required
def api_delete_record(kind, record_id):
    _check_kind(kind)
    removed, error = _store().remove_record(_workspace(), kind, record_id)
    if error:
        abort(500, description=error)
    if not removed:
        abort(404, description="Record not found")
    return jsonify({'deleted': record_id})


@main_bp.route('/api/records/clear', methods=['POST'])
@manager_required
def api_clear_records():
    _cleared, error = _store().clear_all(_workspace())
    if error:
        abort(500, description=error)
    current_app.logger.warning("All records cleared in workspace %s", _workspace())
    return jsonify({'cleared': _workspace()})


@main_bp.route('/api/operator/<employee_id>/history', methods=['GET'])
@login_required
def api_operator_history(employee_id):
    state = g.app_state
    if state.role == ROLE_OPERATOR and state.employee_id != employee_id:
        abort(403)
    passes, defects, _downtime = _snapshot()
    return jsonify(employee_history(passes, defects, employee_id))


@main_bp.route('/reports/dashboard/export', methods=['GET'])
@manager_required
def export_dashboard_report():
    fmt = _export_format('xlsx', _DASHBOARD_FORMATS)
    filters, period = _filters_from_args(request.args)
    passes, defects, downtime = _snapshot()
    filtered = filter_records(passes, defects, downtime, filters)
    today = _now().date()

    if fmt in ('chat', 'pptx'):
        # Chat and slides summarise the selected area only.
        stats = compute_statistics(
            passes, defects, downtime, replace(filters, chart_scope=CHART_SCOPE_SELECTED)
        )
    else:
        stats = compute_statistics(passes, defects, downtime, filters)

    if fmt == 'xlsx':
        content = build_workbook(filtered, filters.area, tz=filters.tz)
        return send_file(
            io.BytesIO(content),
            mimetype=_XLSX_MIMETYPE,
            download_name=workbook_filename(filters.area, period, today),
            as_attachment=True,
        )
    if fmt == 'pptx':
        period_pt, period_cn = (
            REPORT_PERIODS[period][1:] if period in REPORT_PERIODS else _CUSTOM_PERIOD_LABELS
        )
        content = build_presentation(
            stats,
            filtered,
            filters.area,
            period_pt=period_pt,
            period_cn=period_cn,
            start=filters.start_date,
            end=filters.end_date,
        )
        return send_file(
            io.BytesIO(content),
            mimetype=_PPTX_MIMETYPE,
            download_name=deck_filename(filters.area, period, today),
            as_attachment=True,
        )
    if fmt == 'chat':
        message = build_chat_message(stats, filtered, filters.area, today)
        return jsonify({'message': message, 'share_url': share_url(message)})

    html = render_template(
        'report/dashboard.html',
        stats=stats,
        filters=filters,
        area_label=area_display_name(filters.area),
        charts=dashboard_charts(stats),
        downtime=filtered.downtime,
        report_css=_load_report_css(),
        generated_at=_now().strftime('%d/%m/%Y %H:%M'),
    )
    stem = f"Relatorio_VQ_{'_'.join(area_display_name(filters.area).split())}_{today.isoformat()}"
    return _send_document(html, fmt, stem)


@main_bp.route('/reports/dossier/export', methods=['GET'])
@manager_required
def export_vehicle_dossier():
    fmt = _export_format('pdf')
    vin = normalize_vin(request.args.get('vin'))
    if not vin:
        abort(400, description="A VIN is required.")
    filters, _period = _filters_from_args(request.args)
    passes, defects, downtime = _snapshot()
    # Same rows as the dashboard's VIN history for these filters.
    history = [
        {**row, 'type': STATUS_OK if row['type'] == STATUS_OK else STATUS_NOT_OK}
        for row in compute_statistics(passes, defects, downtime, filters)['vinHistory']
    ]
    html = render_template(
        'report/dossier.html',
        vin=vin,
        history=history,
        defect_count=sum(row['quantity'] for row in history if row['type'] == STATUS_NOT_OK),
        report_css=_load_report_css(),
        generated_at=_now().strftime('%d/%m/%Y %H:%M'),
    )
    return _send_document(html, fmt, f"Dossie_VIN_{vin}")


@main_bp.route('/reports/operator/export', methods=['GET'])
@manager_required
def export_operator_log():
    fmt = _export_format('pdf')
    employee_id = (request.args.get('employee_id') or '').strip()
    if not employee_id:
        abort(400, description="An employee id is required.")
    passes, defects, _downtime = _snapshot()
    history = employee_history(passes, defects, employee_id)
    html = render_template(
        'report/operator_log.html',
        employee_id=employee_id,
        history=history,
        ok_total=sum(row['quantity'] for row in history if row['type'] == STATUS_OK),
        nok_total=sum(row['quantity'] for row in history if row['type'] == STATUS_NOT_OK),
        report_css=_load_report_css(),
        generated_at=_now().strftime('%d/%m/%Y %H:%M'),
    )
    return _send_document(html, fmt, f"Historico_Operador_{employee_id}")


@main_bp.app_template_filter('local_time')
def local_time_filter(timestamp_ms, fmt: str = '%d/%m/%Y %H:%M') -> str:
    """Format an epoch-millisecond timestamp in the configured time zone."""
    try:
        moment = datetime.fromtimestamp(int(timestamp_ms) / 1000, current_app.config.get('TIMEZONE'))
    except (TypeError, ValueError, OverflowError, OSError):
        return ''
    return moment.strftime(fmt)
