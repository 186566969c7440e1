def handler(request):
    # Liveness only; never loads the roster
    from api._shared import POINTER_STORE_URL, SHEET_URL, json_response

    if request.method == "OPTIONS":
        return json_response({"ok": True}, 204)
    return json_response({
        "ok": True,
        "service": "student-directory",
        "defaultSheet": bool(SHEET_URL),
        "pointerStore": bool(POINTER_STORE_URL),
    }, 200)
