"""Agent card advertised at /.well-known/agent-card.json."""

from typing import Any, Dict, Optional

A2UI_EXTENSION_URI = "https://a2ui.org/a2a-extension/a2ui/v0.8"
PROTOCOL_VERSION = "0.3.0"


def build_agent_card(
    name: str,
    url: str,
    version: str,
    description: Optional[str] = None,
) -> Dict[str, Any]:
    return {
        "name": name,
        "description": description or "An agent that generates UIs using the A2UI protocol.",
        "protocolVersion": PROTOCOL_VERSION,
        "version": version,
        "url": url,
        "skills": [
            {
                "id": "a2ui-chat",
                "name": "A2UI Chat",
                "description": "Generates a UI based on a chat conversation.",
                "tags": ["chat", "a2ui"],
                "examples": [],
            }
        ],
        "capabilities": {
            "streaming": True,
            "extensions": [
                {
                    "uri": A2UI_EXTENSION_URI,
                    "description": "Provides agent driven UI using the A2UI JSON format.",
                }
            ],
        },
        "defaultInputModes": ["text/plain"],
        "defaultOutputModes": ["text/plain"],
        "preferredTransport": "JSONRPC",
    }
