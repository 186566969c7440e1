import json
import traceback

def handler(request):
    # Drill-down from a counsellor or section breakdown into its students
    try:
        from api._shared import json_response, get_orchestrator
        from api.directory import drill_down

        if request.method == "OPTIONS":
            return json_response({"ok": True}, 204)

        orchestrator = get_orchestrator()
        supplied = request.headers.get('X-Admin-Passphrase') or ''
        if supplied != orchestrator.cache.get_admin_passphrase():
            return json_response({'ok': False, 'passwordError': True}, 403)

        kind = (request.args.get('filter') or 'all').strip()
        value = (request.args.get('value') or '').strip()
        orchestrator.ensure_loaded()
        try:
            students = drill_down(orchestrator.students, kind, value)
        except ValueError as e:
            return json_response({'error': str(e)}, 400)
        return json_response({'results': [s.to_dict() for s in students], 'count': len(students)}, 200)
    except Exception as e:
        trace = traceback.format_exc()
        headers = {
            "Content-Type": "application/json; charset=utf-8",
            "Access-Control-Allow-Origin": "*",
            "Access-Control-Allow-Methods": "GET,OPTIONS",
            "Access-Control-Allow-Headers": "Content-Type,Authorization",
            "Cache-Control": "no-store, no-cache, must-revalidate, max-age=0",
        }
        return (json.dumps({"error": str(e), "trace": trace}), 500, headers)
