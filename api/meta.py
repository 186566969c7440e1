import json
import traceback

def handler(request):
    # Admin breakdowns; always returns JSON (with error/trace if needed)
    try:
        from api._shared import json_response, get_orchestrator
        from api.directory import aggregate_students, filter_breakdown

        if request.method == "OPTIONS":
            return json_response({"ok": True}, 204)

        orchestrator = get_orchestrator()
        supplied = request.headers.get('X-Admin-Passphrase') or ''
        if supplied != orchestrator.cache.get_admin_passphrase():
            return json_response({'ok': False, 'passwordError': True}, 403)

        orchestrator.ensure_loaded()
        data = aggregate_students(orchestrator.students)
        counsellor = (request.args.get('counsellor') or '').strip()
        if counsellor:
            data['byCounsellor'] = filter_breakdown(data['byCounsellor'], counsellor)
        dbg = str(request.args.get('debug') or '').lower() in ('1', 'true', 'yes')
        if dbg:
            data['_debug_summary'] = orchestrator.status()
        return json_response(data, 200)
    except Exception as e:
        trace = traceback.format_exc()
        body = {
            "error": str(e),
            "trace": trace
        }
        headers = {
            "Content-Type": "application/json; charset=utf-8",
            "Access-Control-Allow-Origin": "*",
            "Access-Control-Allow-Methods": "GET,OPTIONS",
            "Access-Control-Allow-Headers": "Content-Type,Authorization",
            "Cache-Control": "no-store, no-cache, must-revalidate, max-age=0",
        }
        return (json.dumps(body), 500, headers)
