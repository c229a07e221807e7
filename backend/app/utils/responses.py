from flask import jsonify


def success_response(data=None, message="OK", status_code=200):
    payload = {"success": True, "message": message}
    if data is not None:
        payload["data"] = data
    response = jsonify(payload)
    response.status_code = status_code
    return response


def error_response(message="Error", status_code=400, errors=None, payload=None):
    """Sobre de error; 'payload' lleva el código estable (p.ej. INVALID_TRANSITION)."""

    body = {"success": False, "message": message}
    if errors:
        body["errors"] = errors
    if payload:
        body["payload"] = payload
    response = jsonify(body)
    response.status_code = status_code
    return response
