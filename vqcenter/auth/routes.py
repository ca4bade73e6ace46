from flask import (
    Blueprint,
    current_app,
    flash,
    g,
    redirect,
    render_template,
    request,
    session,
    url_for,
)
from werkzeug.security import check_password_hash, generate_password_hash

from vqcenter.constants import ROLE_MANAGER, ROLE_OPERATOR
from vqcenter.state import AppState, normalize_workspace_id

auth_bp = Blueprint('auth', __name__)


def _manager_password_hash() -> str | None:
    cached = current_app.config.get('MANAGER_PASSWORD_HASH')
    if cached:
        return cached
    password = current_app.config.get('MANAGER_PASSWORD')
    if not password:
        return None
    hashed = generate_password_hash(password)
    current_app.config['MANAGER_PASSWORD_HASH'] = hashed
    return hashed


def _home_for(state: AppState) -> str:
    if state.is_manager:
        return url_for('main.dashboard')
    return url_for('main.entry_home')


@auth_bp.route('/', methods=['GET', 'POST'])
@auth_bp.route('/login', methods=['GET', 'POST'])
def login():
    if request.method == 'POST':
        role = (request.form.get('role') or ROLE_OPERATOR).strip().upper()
        workspace_id = normalize_workspace_id(
            request.form.get('workspace'),
            default=current_app.config['DEFAULT_WORKSPACE'],
        )
        employee_id = (request.form.get('employee_id') or '').strip()

        if role == ROLE_MANAGER:
            hashed = _manager_password_hash()
            password = request.form.get('password') or ''
            if not hashed:
                flash('Manager access is not configured.')
            elif check_password_hash(hashed, password):
                state = AppState(ROLE_MANAGER, workspace_id, employee_id, 'MANAGER')
                state.save(session)
                return redirect(_home_for(state))
            else:
                flash('Invalid password.')
        elif role == ROLE_OPERATOR:
            state = AppState(ROLE_OPERATOR, workspace_id, employee_id, employee_id or 'OPERATOR')
            state.save(session)
            return redirect(_home_for(state))
        else:
            flash('Unknown access profile.')
    return render_template(
        'login.html',
        default_workspace=current_app.config['DEFAULT_WORKSPACE'],
        manager_enabled=bool(current_app.config.get('MANAGER_PASSWORD')),
    )


@auth_bp.route('/workspace', methods=['POST'])
def switch_workspace():
    state = g.get('app_state')
    if state is None:
        return redirect(url_for('auth.login'))
    workspace = request.form.get('workspace') or (request.get_json(silent=True) or {}).get('workspace')
    new_state = state.switch_workspace(workspace or current_app.config['DEFAULT_WORKSPACE'])
    new_state.save(session)
    current_app.logger.info(
        "Workspace switched from %s to %s", state.workspace_id, new_state.workspace_id
    )
    return redirect(_home_for(new_state))


@auth_bp.route('/logout')
def logout():
    AppState.clear(session)
    return redirect(url_for('auth.login'))
