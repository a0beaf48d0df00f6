from flask import Blueprint, current_app, jsonify, request, Response, stream_with_context
from byokstream.errors import ByokStreamError, UnsupportedProviderError
from byokstream.services.chat_streamer import chunks_as_events, stream_events_as_sse
from byokstream.services.llm.registry import client_class, client_from_config, provider_type
from byokstream.services.schema import (
    build_example_args_json,
    dedupe_tools_by_name,
    resolve_tool_schema,
    summarize_tool_schemas,
    validate_strict_schema,
    validate_tools_for_provider,
)
from byokstream.services.schema.strict import STRICT_PROVIDERS
from byokstream.services.tool_meta import build_tool_meta_by_name
import json
import os, sys, logging
import threading

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO"),
    handlers=[logging.StreamHandler(sys.stdout)],
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    force=True,
)

api_bp = Blueprint('api', __name__)

@api_bp.before_app_request
def log_request_info():
    # headers may carry vendor credentials
    logging.info(
        f"Request: {request.method} {request.path} | "
        f"Remote: {request.remote_addr} | "
        f"Length: {request.content_length or 0}"
    )

@api_bp.after_app_request
def log_response_info(response):
    logging.info(
        f"Response: {request.method} {request.path} | "
        f"Status: {response.status_code}"
    )
    return response

@api_bp.route('/health', methods=['GET'])
def health():
    return jsonify({"status": "ok"}), 200

@api_bp.route('/v1/chat-stream', methods=['POST'])
def chat_stream():
    request_json = request.get_json(force=True, silent=True) or {}
    messages = request_json.get('messages')
    if not isinstance(messages, list) or not messages:
        return jsonify({"error": "messages must be a non-empty list"}), 400
    tools = request_json.get('tools') or []
    if not isinstance(tools, list):
        return jsonify({"error": "tools must be a list"}), 400

    try:
        client = client_from_config(current_app.config)
    except UnsupportedProviderError as e:
        return jsonify({"error": "Unsupported provider", "detail": e.message}), 400
    except ValueError as e:
        return jsonify({"error": "Invalid provider configuration", "detail": str(e)}), 500

    support_start = request_json.get('support_tool_use_start')
    if support_start is None:
        support_start = current_app.config.get('SUPPORT_TOOL_USE_START', False)
    tool_meta = build_tool_meta_by_name(tools, current_app.config.get('TOOL_META_MAX_ENTRIES', 1000))
    cancel_event = threading.Event()

    def event_stream():
        chunks = client.stream_chat(
            messages,
            system=request_json.get('system'),
            tools=tools,
            params=request_json.get('params'),
            support_tool_use_start=bool(support_start),
            tool_meta=tool_meta,
            cancel_event=cancel_event,
        )
        try:
            yield from stream_events_as_sse(chunks_as_events(chunks))
        except ByokStreamError as e:
            logging.warning(f"Stream failed: {e}")
            error_msg = {
                "error": "Upstream error",
                "detail": str(e)
            }
            yield f"data: {json.dumps(error_msg)}\n\n"
        except Exception as e:
            logging.exception("Unexpected stream failure")
            error_msg = {
                "error": "Internal error",
                "detail": str(e)
            }
            yield f"data: {json.dumps(error_msg)}\n\n"
        finally:
            # also runs when the client disconnects
            cancel_event.set()
            chunks.close()

    return Response(stream_with_context(event_stream()), mimetype='text/event-stream', headers={
        'Cache-Control': 'no-cache',
        'Connection': 'keep-alive'
    })

@api_bp.route('/v1/tools/check', methods=['POST'])
def tools_check():
    request_json = request.get_json(force=True, silent=True) or {}
    tools = request_json.get('tools')
    if not isinstance(tools, list):
        return jsonify({"error": "tools must be a list"}), 400
    try:
        provider = provider_type(request_json.get('provider_type') or current_app.config.get('LLM_PROVIDER'))
    except UnsupportedProviderError as e:
        return jsonify({"error": "Unsupported provider", "detail": e.message}), 400

    tool_defs = dedupe_tools_by_name(tools)
    strict = provider.value in STRICT_PROVIDERS
    results = []
    for td in tool_defs:
        issues = validate_strict_schema(resolve_tool_schema(td)) if strict else []
        results.append({
            "name": td["name"].strip(),
            "issues": [str(i) for i in issues],
            "sample": json.loads(build_example_args_json(td)),
        })

    ok, issues = validate_tools_for_provider(provider.value, client_class(provider).convert_tools(tool_defs))
    return jsonify({
        "provider_type": provider.value,
        "ok": ok,
        "issues": issues,
        "tools": results,
        "summary": summarize_tool_schemas(tool_defs),
    }), 200

# --- Fallback for 404 ---
@api_bp.app_errorhandler(404)
def not_found(e):
    return jsonify({"error": "Not found"}), 404
