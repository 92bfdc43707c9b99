"""
Plan generation endpoint.

``POST /api/plan`` takes ``{planType, form, filesText, customInstructions}``
and answers ``{"html": ...}``. It is called cross-origin by browser front
ends, so every response carries permissive CORS headers.
"""
import json
import logging

from flask import Blueprint, Response, jsonify, request

from ..services import openai_plan_service
from ..services.openai_plan_service import PlanConfigError, UpstreamError

logger = logging.getLogger(__name__)

generation_bp = Blueprint('generation', __name__)

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "POST, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type, Authorization",
}


def _text(body, status):
    return Response(body, status=status, headers=CORS_HEADERS, mimetype='text/plain')


@generation_bp.route('/api/plan', methods=['GET', 'POST', 'PUT', 'PATCH', 'DELETE', 'OPTIONS'])
def plan():
    if request.method == 'OPTIONS':
        return Response("", status=204, headers=CORS_HEADERS)
    if request.method != 'POST':
        return _text("Method Not Allowed", 405)

    try:
        client = openai_plan_service.create_client()
    except PlanConfigError as e:
        logger.error("Plan request refused: %s", e)
        return _text(str(e), 500)

    try:
        data = json.loads(request.get_data(as_text=True) or "{}")
        if not isinstance(data, dict):
            raise ValueError("Request body must be a JSON object")
        plan_type = data.get("planType")
        form = data.get("form")
        if not plan_type or not form:
            return Response(json.dumps({"error": "Missing planType or form"}), status=400,
                            headers=CORS_HEADERS, mimetype='application/json')

        html = openai_plan_service.write_plan(
            plan_type, form,
            files_text=data.get("filesText") or [],
            custom_instructions=data.get("customInstructions") or "",
            client=client,
        )
    except UpstreamError as e:
        return _text(e.body, e.status)
    except Exception as e:
        logger.exception("Plan generation failed")
        return _text(str(e), 500)

    resp = jsonify({"html": html})
    resp.headers.update(CORS_HEADERS)
    return resp
