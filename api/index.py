import logging
from functools import wraps

from flask import Flask, jsonify, make_response, request, session

from api._shared import MIN_PASSPHRASE_LENGTH, SESSION_SECRET, get_orchestrator
from api.directory import aggregate_students, drill_down, filter_breakdown, search_students
from api.errors import DirectoryError, IngestError, InvalidSheetUrl, SyncError
from api.ingest import allowed_file, ingest_file

logger = logging.getLogger("api")

# Vercel: export a WSGI Flask app named `app` with ONLY API routes (no static serving)
app = Flask(__name__)
app.secret_key = SESSION_SECRET
app.config['MAX_CONTENT_LENGTH'] = 16 * 1024 * 1024
# breakdowns are ordered by count
app.json.sort_keys = False

ROLES = ('user', 'admin')


def json_utf8(data, status: int = 200):
    resp = make_response(jsonify(data), status)
    resp.headers['Content-Type'] = 'application/json; charset=utf-8'
    resp.headers['Cache-Control'] = 'no-store, no-cache, must-revalidate, max-age=0'
    return resp


def _loaded_orchestrator():
    orchestrator = get_orchestrator()
    orchestrator.ensure_loaded()
    return orchestrator


def require_role(*roles):
    def decorator(view):
        @wraps(view)
        def wrapped(*args, **kwargs):
            role = session.get('role')
            if role not in roles:
                return json_utf8({'error': 'forbidden', 'role': role}, 403)
            return view(*args, **kwargs)
        return wrapped
    return decorator


def _payload() -> dict:
    return request.get_json(silent=True) or request.form.to_dict() or {}


@app.get('/health')
@app.get('/api/health')
def api_health():
    return json_utf8({'ok': True})


@app.get('/api/status')
def api_status():
    return json_utf8(_loaded_orchestrator().status())


@app.post('/api/login')
def api_login():
    data = _payload()
    role = (data.get('role') or '').strip().lower()
    if role not in ROLES:
        return json_utf8({'error': f"Unknown role '{role}'"}, 400)
    if role == 'admin':
        stored = get_orchestrator().cache.get_admin_passphrase()
        if (data.get('password') or '') != stored:
            return json_utf8({'ok': False, 'passwordError': True})
    session['role'] = role
    return json_utf8({'ok': True, 'role': role})


@app.post('/api/logout')
def api_logout():
    session.pop('role', None)
    return json_utf8({'ok': True})


@app.get('/search')
@app.get('/api/search')
@require_role(*ROLES)
def api_search():
    query = request.args.get('q') or ''
    results = search_students(_loaded_orchestrator().students, query)
    return json_utf8({'results': [s.to_dict() for s in results], 'count': len(results)})


@app.post('/api/sync')
@require_role(*ROLES)
def api_refresh():
    # window focus regained; silent unless the roster is empty
    return json_utf8(get_orchestrator().refresh())


@app.get('/api/admin/stats')
@require_role('admin')
def api_admin_stats():
    stats = aggregate_students(_loaded_orchestrator().students)
    counsellor_filter = (request.args.get('counsellor') or '').strip()
    if counsellor_filter:
        stats['byCounsellor'] = filter_breakdown(stats['byCounsellor'], counsellor_filter)
    return json_utf8(stats)


@app.get('/api/admin/students')
@require_role('admin')
def api_admin_students():
    kind = request.args.get('filter') or 'all'
    value = request.args.get('value')
    try:
        students = drill_down(_loaded_orchestrator().students, kind, value)
    except ValueError as e:
        return json_utf8({'error': str(e)}, 400)
    return json_utf8({'results': [s.to_dict() for s in students], 'count': len(students)})


@app.delete('/api/admin/students')
@require_role('admin')
def api_admin_clear():
    get_orchestrator().clear()
    return json_utf8({'ok': True, 'count': 0})


@app.get('/api/admin/sheet-url')
@require_role('admin')
def api_admin_sheet_url():
    return json_utf8({'url': get_orchestrator().cache.get_sheet_url()})


@app.put('/api/admin/sheet-url')
@require_role('admin')
def api_admin_repoint():
    url = (_payload().get('url') or '').strip()
    try:
        result = get_orchestrator().repoint(url)
    except InvalidSheetUrl as e:
        return json_utf8({'error': str(e)}, 400)
    except DirectoryError as e:
        logger.error("[Admin] repoint fetch failed: %s", e)
        return json_utf8({'error': f"Saved, but sync failed: {e}"}, 502)
    return json_utf8({'ok': True, 'url': url, **result})


@app.post('/api/admin/sync')
@require_role('admin')
def api_admin_sync():
    try:
        count = get_orchestrator().sync_now()
    except SyncError as e:
        return json_utf8({'error': str(e)}, 400)
    except DirectoryError as e:
        return json_utf8({'error': f"Sync failed. Ensure your sheet is public (Anyone with link can view). {e}"}, 502)
    return json_utf8({'ok': True, 'count': count})


@app.post('/api/admin/upload')
@require_role('admin')
def api_admin_upload():
    file = request.files.get('file')
    if file is None or not file.filename:
        return json_utf8({'error': 'No file selected'}, 400)
    if not allowed_file(file.filename):
        return json_utf8({'error': 'Upload an .xlsx or .csv file.'}, 400)
    try:
        students = ingest_file(file.stream, file.filename)
    except IngestError as e:
        return json_utf8({'error': str(e)}, 400)
    count = get_orchestrator().replace_records(students, source='upload')
    return json_utf8({'ok': True, 'count': count})


@app.post('/api/admin/password')
@require_role('admin')
def api_admin_password():
    data = _payload()
    new_pwd = data.get('password') or ''
    confirm = data.get('confirm') or ''
    if len(new_pwd) < MIN_PASSPHRASE_LENGTH:
        return json_utf8({'error': f"Min {MIN_PASSPHRASE_LENGTH} characters required."}, 400)
    if new_pwd != confirm:
        return json_utf8({'error': 'Passwords do not match.'}, 400)
    if not get_orchestrator().cache.set_admin_passphrase(new_pwd):
        return json_utf8({'error': 'Could not save the new password.'}, 500)
    return json_utf8({'ok': True})
