"""System prompt for UI generation."""

import json
from typing import Any, Dict, Optional

from .tools import UPDATE_SURFACE_TOOL

BASE_PROMPT = """\
You are an expert UI generation agent. Your goal is to generate a UI based on the user's request.

When the user interacts with the UI, you will receive a message containing a JSON block with an array of UI events. You should use the data from these events, especially the 'value' of the action event, to understand the current state of the UI and decide on the next step."""

CATALOG_SECTION = """\
When you use the '{tool}' tool, every 'widget' in 'definition.widgets' MUST be a JSON object that strictly conforms to the following JSON Schema:
```json
{schema}
```"""

CLOSING = """\
After you have successfully called the '{tool}' tool and received a result with a status of 'updated', consider the user's request fulfilled. Respond with a short confirmation message and then stop. Do not call the tool again unless the user asks for further changes."""


def build_system_prompt(catalog: Optional[Dict[str, Any]] = None) -> str:
    """
    Build the system prompt, optionally embedding the widget catalog.

    Args:
        catalog: Catalog JSON Schema to include verbatim

    Returns:
        Prompt text
    """
    sections = [BASE_PROMPT]
    if catalog is not None:
        sections.append(
            CATALOG_SECTION.format(
                tool=UPDATE_SURFACE_TOOL, schema=json.dumps(catalog, indent=2)
            )
        )
    sections.append(CLOSING.format(tool=UPDATE_SURFACE_TOOL))
    return "\n\n".join(sections)
