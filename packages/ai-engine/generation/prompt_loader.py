"""Prompt templates for the two-agent pipeline.

Templates are plain text files shipped next to this module:

    prompts/
      decision-agent.txt
      api-generator.txt
      coding-agent/base-rules.txt
      coding-agent/<mode>.txt
"""

from functools import lru_cache
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .decision_agent import DecisionResult

PROMPTS_DIR = Path(__file__).parent / "prompts"

MODES = ("create_mode", "modify_mode", "link_mode", "error_fix_mode", "question_mode")

_RULE = "═" * 63


@lru_cache(maxsize=None)
def load_prompt_file(relative_path: str) -> str:
    """Read a template relative to the prompts directory.

    Raises FileNotFoundError for unknown templates.
    """
    path = PROMPTS_DIR / relative_path
    return path.read_text(encoding="utf-8")


def clear_cache() -> None:
    load_prompt_file.cache_clear()


def build_coding_prompt(mode: str) -> str:
    """Base coding rules followed by the rules for one mode."""
    if mode not in MODES:
        raise ValueError(f"Unknown coding mode: {mode}")

    base_rules = load_prompt_file("coding-agent/base-rules.txt")
    mode_rules = load_prompt_file(f"coding-agent/{mode}.txt")

    combined = (
        f"{base_rules}\n\n"
        f"{_RULE}\nMODE-SPECIFIC INSTRUCTIONS\n{_RULE}\n\n"
        f"{mode_rules}\n\n"
        f"{_RULE}"
    )
    return combined.strip()


def build_system_prompt(
    mode: str,
    decision: "DecisionResult",
    project_type: str = "Next.js",
    framework: str = "Next.js App Router",
    ui_library: str = "shadcn/ui",
    relevant_files: list[str] | None = None,
) -> str:
    """Coding prompt plus the execution plan produced by the decision agent."""
    relevant_files = relevant_files or []
    mode_prompt = build_coding_prompt(mode)

    files_line = ", ".join(relevant_files[:10]) if relevant_files else "None provided"

    parts = [
        _RULE,
        "EXECUTION PLAN FROM DECISION AGENT",
        _RULE,
        "",
        f"Summary: {decision.summary}",
        "",
        "Tasks to Complete:",
        *decision.tasks,
        "",
        "Critical Reminders:",
        *decision.critical_reminders,
        "",
        "Project Context:",
        f"- Type: {project_type}",
        f"- Framework: {framework}",
        f"- UI Library: {ui_library}",
        f"- Relevant Files: {files_line}",
        "",
        _RULE,
        "YOUR TASK",
        _RULE,
        "",
        "Follow the execution plan above step-by-step. Complete ALL tasks listed.",
    ]

    if mode == "link_mode":
        parts += [
            "",
            "🚨 CRITICAL FOR LINKING TASKS:",
            "1. Create the new component in its own file",
            "2. Find the parent file that contains the target element",
            "3. Import the new component in the parent",
            "4. Add state and handlers so the target element opens or renders it",
            "5. Return BOTH the new file and the modified parent",
            "",
            "DO NOT only create the component - you MUST also modify the parent!",
        ]
    elif mode == "error_fix_mode":
        parts += [
            "",
            "🚨 CRITICAL FOR ERROR FIXING:",
            "1. Read the error message carefully",
            "2. Locate the exact line causing it",
            "3. Apply the minimal fix",
            "4. Do NOT add features or refactor unrelated code",
        ]
    elif mode == "question_mode":
        parts += [
            "",
            "🚨 CRITICAL FOR QUESTIONS:",
            "1. Do NOT modify any files",
            "2. Answer based on the code in the project context",
            "3. Reference file paths when explaining",
            "4. Respond with the answer JSON only",
        ]

    parts += ["", "Now proceed with the implementation."]

    return f"{mode_prompt}\n\n" + "\n".join(parts)
