import os

class Config:
    LLM_PROVIDER = os.environ.get("LLM_PROVIDER", "")
    LLM_BASE_URL = os.environ.get("LLM_BASE_URL", "")
    LLM_MODEL = os.environ.get("LLM_MODEL", "")
    LLM_HEADERS = os.environ.get("LLM_HEADERS", "")
    LLM_REQUEST_DEFAULTS = os.environ.get("LLM_REQUEST_DEFAULTS", "")
    LLM_CONNECT_TIMEOUT = float(os.environ.get("LLM_CONNECT_TIMEOUT", 5))
    LLM_READ_TIMEOUT = float(os.environ.get("LLM_READ_TIMEOUT", 300))
    SSE_MAX_LINE_LENGTH = int(os.environ.get("SSE_MAX_LINE_LENGTH", 4 * 1024 * 1024))
    TOOL_META_MAX_ENTRIES = int(os.environ.get("TOOL_META_MAX_ENTRIES", 1000))
    SUPPORT_TOOL_USE_START = os.environ.get("SUPPORT_TOOL_USE_START", "false").lower() in ("1", "true", "yes")
