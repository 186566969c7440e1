import json
import traceback

def handler(request):
    try:
        from api._shared import json_response, get_orchestrator
        from api.directory import search_students
        if request.method == "OPTIONS":
            return json_response({"ok": True}, 204)
        query = request.args.get('q') or ''
        orchestrator = get_orchestrator()
        orchestrator.ensure_loaded()
        results = search_students(orchestrator.students, query)
        return json_response({'results': [s.to_dict() for s in results], 'count': len(results)}, 200)
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
