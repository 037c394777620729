"""Short human-readable summaries of tool results."""
import json
from typing import Any


def summarize_tool_result(tool_name: str, result: Any) -> str:
    """
    Build the text shown in place of the assistant message after a tool runs.

    Args:
        tool_name: Name of the tool that ran
        result: Its structured result

    Returns:
        One-line summary
    """
    if isinstance(result, dict):
        if tool_name == "calculate" and "result" in result:
            return f"The calculation result is: {result['result']}"
        if tool_name == "get_current_time":
            shown = result.get("formatted") or result.get("currentTime")
            if shown:
                return f"The current time is: {shown}"
    return f"I used the {tool_name} tool and got: {json.dumps(result, default=str)}"
