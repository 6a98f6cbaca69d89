"""Fixed catalog of browser tools offered to the LLM."""

from typing import Any, Dict, List


def _function(name: str, description: str, properties: Dict[str, Any], required: List[str]) -> Dict[str, Any]:
    return {
        "type": "function",
        "function": {
            "name": name,
            "description": description,
            "parameters": {
                "type": "object",
                "properties": properties,
                "required": required,
            },
        },
    }


ELEMENT_ID = {"type": "integer", "description": "Numeric id of the element in the current snapshot (e.g. 5)"}

# OpenAI function-calling format; anthropic_tools() converts it
TOOL_DEFINITIONS: List[Dict[str, Any]] = [
    _function(
        "navigate",
        "Open a URL in the active tab. Use it when the current page does not have what you need.",
        {"url": {"type": "string", "description": "Full URL, e.g. https://example.com"}},
        ["url"],
    ),
    _function(
        "open_new_tab",
        "Open a new tab, optionally at a URL. The new tab becomes the active one. "
        "Useful for working with several sites at once.",
        {"url": {"type": "string", "description": "Optional URL for the new tab. Leave out for a blank tab."}},
        [],
    ),
    _function(
        "switch_tab",
        "Make another tab active by its 0-based index from the Tabs list of the snapshot. "
        "Every following action applies to that tab until you switch again.",
        {"tab_index": {"type": "integer", "description": "0-based index from the Tabs list"}},
        ["tab_index"],
    ),
    _function(
        "click_element",
        "Click a button, link or other interactive element by its id from the snapshot. "
        'Do not click elements marked "(disabled)"; fill the required fields first or wait. '
        "Prefer the element whose text or label names the action (Submit, Send, Close).",
        {"element_id": ELEMENT_ID},
        ["element_id"],
    ),
    _function(
        "type_text",
        "Type text into an input or textarea given by element_id, replacing its content. "
        "Without element_id the text goes to the focused field.",
        {
            "text": {"type": "string", "description": "Text to type"},
            "element_id": {
                "type": "integer",
                "description": "Optional id of the input or textarea. Leave out to type into the focused field.",
            },
        },
        ["text"],
    ),
    _function(
        "select_option",
        "Choose an option of a <select> dropdown by its value or visible label. "
        "The options are listed next to the element in the snapshot.",
        {
            "element_id": {"type": "integer", "description": "Id of the select element"},
            "value_or_label": {"type": "string", "description": "Option value attribute or visible label"},
        },
        ["element_id", "value_or_label"],
    ),
    _function(
        "set_checkbox",
        "Check or uncheck a checkbox or radio button (input type=checkbox or type=radio).",
        {
            "element_id": {"type": "integer", "description": "Id of the checkbox or radio button"},
            "checked": {"type": "boolean", "description": "true to check, false to uncheck"},
        },
        ["element_id", "checked"],
    ),
    _function(
        "scroll",
        "Scroll the page to reveal more content.",
        {
            "direction": {
                "type": "string",
                "enum": ["up", "down", "left", "right"],
                "description": "Scroll direction",
            }
        },
        ["direction"],
    ),
    _function(
        "wait",
        "Pause so dynamic content can load or animations can finish. Use it after navigation, "
        "after a click that opens a modal, or after submitting a form to see the outcome.",
        {"seconds": {"type": "number", "description": "Seconds to wait (1-10)"}},
        ["seconds"],
    ),
    _function(
        "task_done",
        "Call when the user's task is fully completed, with a short summary of the result.",
        {"result": {"type": "string", "description": "Short summary of what was done"}},
        ["result"],
    ),
    _function(
        "request_user_input",
        "Call when only the user can provide what is needed next (a choice, a confirmation, a password).",
        {"question": {"type": "string", "description": "Question for the user"}},
        ["question"],
    ),
]


def tool_names() -> List[str]:
    return [tool["function"]["name"] for tool in TOOL_DEFINITIONS]


def anthropic_tools(tools: List[Dict[str, Any]] = None) -> List[Dict[str, Any]]:
    """Convert OpenAI function definitions to the Anthropic tool format."""
    converted = []
    for tool in tools if tools is not None else TOOL_DEFINITIONS:
        function = tool["function"]
        converted.append({
            "name": function["name"],
            "description": function["description"],
            "input_schema": function["parameters"],
        })
    return converted
