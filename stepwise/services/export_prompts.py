"""Per-tool export instructions.

The export instruction is pasted into a third-party AI tool at the end of a
session; the tool answers with the JSON array that ``ingestion.parse_export``
accepts. Only the ``context_mode`` line differs between tools.
"""

from __future__ import annotations

from dataclasses import dataclass

from stepwise.core.exceptions import NotFoundError

_BASE_PROMPT = """\
Review our entire conversation from the beginning. Extract every prompt I gave you, in sequential order. For each prompt, provide:

"step_order": Sequential number starting from 1
"title": A short 3-6 word title describing what the prompt does
"prompt_text": The exact prompt I wrote (full text, preserve formatting)
"context_mode": {context_mode_line}
"output_summary": One sentence describing what you produced in response
"tips": Any issues I hit or corrections I made after this prompt (empty string if none)

Return ONLY a valid JSON array with no markdown formatting, no backticks, no explanation. Just the raw JSON array starting with [ and ending with ]"""


@dataclass(frozen=True)
class ExportTool:
    slug: str
    name: str
    context_mode_line: str
    instructions: str

    @property
    def meta_prompt(self) -> str:
        return _BASE_PROMPT.format(context_mode_line=self.context_mode_line)

    def to_dict(self) -> dict:
        return {
            "slug": self.slug,
            "name": self.name,
            "metaPrompt": self.meta_prompt,
            "instructions": self.instructions,
        }


_CHAT = '"chat"'

EXPORT_TOOLS: dict[str, ExportTool] = {
    tool.slug: tool
    for tool in (
        ExportTool(
            "cursor", "Cursor",
            'One of "inline", "composer", "cursor_rule", or "terminal"',
            "Paste this in the same Composer thread where you built your project. "
            "Works best at the end of a session.",
        ),
        ExportTool(
            "windsurf", "Windsurf", '"cascade"',
            "Paste this in the Cascade panel in the same session where you built your project.",
        ),
        ExportTool(
            "claude", "Claude", _CHAT,
            "Paste this at the end of your conversation. Claude will review the full chat history.",
        ),
        ExportTool(
            "bolt", "Bolt", _CHAT,
            "Paste this at the end of your Bolt chat session to extract the workflow.",
        ),
        ExportTool(
            "lovable", "Lovable", _CHAT,
            "Paste this at the end of your Lovable session to extract every prompt you used.",
        ),
        ExportTool(
            "replit", "Replit Agent", _CHAT,
            "Paste this in your Replit Agent chat at the end of your session.",
        ),
        ExportTool(
            "other", "Other", _CHAT,
            "Paste this at the end of your AI conversation. Works with most AI coding tools.",
        ),
    )
}


def list_export_tools() -> list[dict]:
    return [tool.to_dict() for tool in EXPORT_TOOLS.values()]


def get_export_tool(slug: str) -> ExportTool:
    tool = EXPORT_TOOLS.get(slug)
    if tool is None:
        raise NotFoundError("Export tool", slug, code="UnknownTool")
    return tool
