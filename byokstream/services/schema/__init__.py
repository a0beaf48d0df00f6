from .sample import (
    build_example_args_json,
    dedupe_tools_by_name,
    resolve_tool_schema,
    sample_json_from_schema,
    summarize_tool_schemas,
)
from .strict import (
    SchemaCoercionIssue,
    coerce_strict_schema,
    validate_strict_schema,
    validate_tools_for_provider,
)
