"""Deterministic capability extraction from a task's target file and prompt.

Three ordered rule tables are applied in turn: file extension, path segment,
prompt keyword. Capabilities keep first-seen order without duplicates, so the
same task always yields the same tuple.
"""

from __future__ import annotations

import re
from pathlib import PurePosixPath

from agent_crew.agents.routing import match_keyword, tokenize

_FRONTEND_SCRIPT = ("ui", "react", "frontend", "javascript")
_STYLESHEET = ("ui", "css", "frontend")

EXTENSION_RULES: tuple[tuple[frozenset[str], tuple[str, ...]], ...] = (
    (frozenset({".jsx", ".tsx"}), _FRONTEND_SCRIPT),
    (frozenset({".css", ".scss", ".sass", ".less"}), _STYLESHEET),
    (frozenset({".html", ".htm", ".vue", ".svelte"}), ("ui", "frontend")),
    (frozenset({".js", ".mjs", ".cjs", ".ts"}), ("javascript",)),
    (frozenset({".sql"}), ("database",)),
    (frozenset({".md", ".mdx", ".rst"}), ("documentation",)),
    (frozenset({".yml", ".yaml", ".toml"}), ("deployment",)),
)

PATH_SEGMENT_RULES: tuple[tuple[frozenset[str], tuple[str, ...]], ...] = (
    (frozenset({"components", "pages", "views", "styles", "ui"}), ("ui", "frontend")),
    (
        frozenset({"api", "routes", "server", "controllers", "services"}),
        ("api", "server", "backend"),
    ),
    (frozenset({"models", "migrations", "db", "database"}), ("database", "backend")),
    (frozenset({"docs", "doc"}), ("documentation",)),
    (frozenset({"deploy", "infra", ".github", "ci"}), ("deployment", "integration")),
    (frozenset({"cms", "content"}), ("cms", "content-management")),
)

PROMPT_KEYWORD_RULES: tuple[tuple[frozenset[str], tuple[str, ...]], ...] = (
    (frozenset({"react"}), ("react", "ui")),
    (frozenset({"component", "frontend", "ui", "interface"}), ("ui", "frontend")),
    (frozenset({"responsive", "design", "layout", "ux"}), ("ux",)),
    (frozenset({"css", "style", "styling"}), ("css",)),
    (frozenset({"api", "endpoint", "backend"}), ("api", "backend")),
    (frozenset({"server"}), ("server",)),
    (frozenset({"database", "sql", "schema", "query"}), ("database",)),
    (frozenset({"auth", "authentication", "jwt", "security", "token"}), ("security",)),
    (frozenset({"integration", "integrate", "full-stack", "fullstack"}), ("integration",)),
    (frozenset({"deploy", "deployment", "pipeline", "ci"}), ("deployment",)),
    (frozenset({"workflow"}), ("workflow",)),
    (frozenset({"cms", "content"}), ("cms", "content-management")),
    (frozenset({"analytics", "dashboard", "chart", "metric"}), ("analytics", "visualization")),
    (frozenset({"document", "documentation", "docs", "guide", "readme"}), (
        "documentation",
        "technical-writing",
    )),
    (frozenset({"plan", "planning", "architecture", "roadmap"}), ("planning", "architecture")),
)

_PATH_SPLIT_RE = re.compile(r"[\\/]+")


def determine_required_capabilities(file: str | None, prompt: str | None) -> tuple[str, ...]:
    """Capability tags a task needs, derived from its file path and prompt."""

    found: list[str] = []
    if file:
        path = PurePosixPath(file.replace("\\", "/").lower())
        for extensions, capabilities in EXTENSION_RULES:
            if path.suffix in extensions:
                _extend(found, capabilities)
        segments = set(_PATH_SPLIT_RE.split(file.lower())[:-1])
        for names, capabilities in PATH_SEGMENT_RULES:
            if segments & names:
                _extend(found, capabilities)
    if prompt:
        tokens = tokenize(prompt)
        for keywords, capabilities in PROMPT_KEYWORD_RULES:
            if any(match_keyword(token, keywords) is not None for token in tokens):
                _extend(found, capabilities)
    return tuple(found)


def _extend(found: list[str], capabilities: tuple[str, ...]) -> None:
    for capability in capabilities:
        if capability not in found:
            found.append(capability)
