"""Two-agent orchestrator.

Stage 1, the decision agent, classifies the request and writes a plan.
Stage 2, the coding agent, follows the plan and returns files. The output
is then reconciled against the existing project and run through the
validator before anything reaches the sandbox.
"""

import json
import logging
import re
import time
from dataclasses import dataclass, field
from typing import Awaitable, Callable

from adapters import BaseLLMAdapter, Message

from .code_validator import validate_and_fix
from .context_builder import SmartContext, format_for_prompt
from .decision_agent import DecisionAgent, DecisionResult
from .prompt_loader import build_system_prompt

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[str, str], Awaitable[None]]

PROGRESS_EVERY_CHUNKS = 5

JSON_OBJECT_RE = re.compile(r"\{[\s\S]*\}")
IMPORT_SOURCE_RE = re.compile(r"""import\s+.*\s+from\s+['"]([^'"]+)['"]""")
INLINE_COMPONENT_RE = re.compile(r"(?<!export default )function\s+([A-Z][a-zA-Z]*)\s*\(")

_RULE = "═" * 79

GITHUB_STRICT_BLOCK = """

{rule}
🚨 GITHUB PROJECT - ULTRA STRICT MODE
{rule}

This is a CLONED GitHub project ({repo}).

CRITICAL RULES:
1. You are ABSOLUTELY FORBIDDEN from creating new files unless explicitly requested
2. ONLY modify existing files listed in the relevant files section
3. The "newFiles" object MUST be empty {{}} unless user explicitly says "create new file X"
4. Creating new files will BREAK the user's application

IF YOU CREATE A NEW FILE INSTEAD OF MODIFYING EXISTING ONES, YOU HAVE FAILED.
"""

EXTRACTED_COMPONENT_HEADER = """"use client";

import { useState } from "react";
import { Dialog, DialogContent, DialogHeader, DialogTitle } from "@/components/ui/dialog";
import { Input } from "@/components/ui/input";
import { Button } from "@/components/ui/button";

"""


@dataclass
class TwoAgentResult:
    modified_files: dict[str, str] = field(default_factory=dict)
    new_files: dict[str, str] = field(default_factory=dict)
    deleted_files: list[str] = field(default_factory=list)
    changes: list[dict] = field(default_factory=list)
    description: str = ""
    is_answer: bool = False
    answer: str | None = None
    decision: DecisionResult | None = None

    @property
    def all_files(self) -> dict[str, str]:
        return {**self.modified_files, **self.new_files}


class TwoAgentOrchestrator:
    """Run decision → coding for one request.

        orchestrator = TwoAgentOrchestrator(DecisionAgent(fast_llm), coding_llm)
        result = await orchestrator.execute(prompt, context, project_id=str(project.id))
    """

    def __init__(self, decision_agent: DecisionAgent, coding_adapter: BaseLLMAdapter, temperature: float = 0.7):
        self.decision_agent = decision_agent
        self.coding_adapter = coding_adapter
        self.temperature = temperature

    async def execute(
        self,
        prompt: str,
        context: SmartContext,
        project_id: str,
        version_id: str | None = None,
        is_github_project: bool = False,
        repo_full_name: str | None = None,
        on_progress: ProgressCallback | None = None,
    ) -> TwoAgentResult:
        await _report(on_progress, "Planning", "Analyzing your request...")

        decision = await self.decision_agent.analyze(
            prompt,
            conversation_history=context.conversation_history,
            existing_files=list(context.previous_files),
            project_type=detect_project_type(context.previous_files),
        )
        logger.info(
            "Project %s: decision %s (mode %s, %d tasks)",
            project_id, decision.intent, decision.mode, len(decision.tasks),
        )

        if decision.mode == "question_mode":
            await _report(on_progress, "Answering", "Generating answer...")
            result = await self.answer_question(prompt, context, decision)
        else:
            await _report(on_progress, "Generating", "Generating code...")
            result = await self.generate_code(
                prompt,
                context,
                decision,
                is_github_project=is_github_project,
                repo_full_name=repo_full_name,
                on_progress=on_progress,
            )

        result.decision = decision
        return result

    async def answer_question(self, prompt: str, context: SmartContext, decision: DecisionResult) -> TwoAgentResult:
        system_prompt = build_system_prompt(
            "question_mode",
            decision,
            project_type=detect_project_type(context.previous_files),
            relevant_files=list(context.relevant_files),
        )

        response = await self.coding_adapter.complete(
            messages=[
                Message(role="system", content=system_prompt),
                Message(role="user", content=format_for_prompt(context, prompt)),
            ],
            temperature=self.temperature,
            json_mode=True,
        )
        data = json.loads(response.content or "{}")

        return TwoAgentResult(
            description=data.get("description") or "Answered question",
            is_answer=True,
            answer=data.get("answer") or "Unable to generate answer",
        )

    async def generate_code(
        self,
        prompt: str,
        context: SmartContext,
        decision: DecisionResult,
        is_github_project: bool = False,
        repo_full_name: str | None = None,
        on_progress: ProgressCallback | None = None,
    ) -> TwoAgentResult:
        patterns = analyze_project_patterns(context.previous_files)

        system_prompt = build_system_prompt(
            decision.mode,
            decision,
            project_type=detect_project_type(context.previous_files),
            framework=detect_framework(context.previous_files),
            ui_library=patterns["ui_library"],
            relevant_files=list(context.relevant_files),
        )
        if is_github_project:
            system_prompt += GITHUB_STRICT_BLOCK.format(rule=_RULE, repo=repo_full_name)
        system_prompt += _project_context_block(context, patterns)

        messages = [
            Message(role="system", content=system_prompt),
            Message(role="user", content=format_for_prompt(context, prompt)),
        ]

        raw = await self._stream_or_complete(messages, on_progress)

        match = JSON_OBJECT_RE.search(raw)
        data = json.loads(match.group(0) if match else raw)

        return post_process(data, context, decision)

    async def _stream_or_complete(self, messages: list[Message], on_progress: ProgressCallback | None) -> str:
        """Stream the completion; on a stream failure retry once without streaming."""
        started = time.monotonic()
        raw = ""
        chunks = 0

        try:
            await _report(on_progress, "Streaming", "AI response started...")
            async for delta in self.coding_adapter.stream(messages, temperature=self.temperature, json_mode=True):
                if not delta:
                    continue
                raw += delta
                chunks += 1
                if chunks % PROGRESS_EVERY_CHUNKS == 0:
                    elapsed = time.monotonic() - started
                    await _report(on_progress, "Generating", f"Generating code... ({elapsed:.1f}s, {chunks} chunks)")

            elapsed = time.monotonic() - started
            await _report(on_progress, "Complete", f"Generated {len(raw)} characters in {elapsed:.1f}s")
            return raw

        except Exception as e:
            logger.warning("Coding stream failed after %d chunks, retrying without streaming: %s", chunks, e)
            await _report(on_progress, "Error", f"Streaming failed: {e}")
            await _report(on_progress, "Retrying", "Retrying without streaming...")

            response = await self.coding_adapter.complete(messages, temperature=self.temperature, json_mode=True)
            await _report(on_progress, "Complete", "Generated response (non-streaming)")
            return response.content or ""


async def _report(on_progress: ProgressCallback | None, stage: str, message: str) -> None:
    if on_progress is not None:
        await on_progress(stage, message)


def _project_context_block(context: SmartContext, patterns: dict) -> str:
    relevant = list(context.relevant_files)
    existing = list(context.previous_files)

    relevant_lines = "\n".join(f"{i}. {p}" for i, p in enumerate(relevant, 1)) if relevant else "None identified"
    more = f"... and {len(existing) - 30} more files" if len(existing) > 30 else ""

    return (
        f"\n\n{_RULE}\nPROJECT CONTEXT\n{_RULE}\n\n"
        "Relevant Files (Priority targets for modification):\n"
        f"{relevant_lines}\n\n"
        f"All Existing Files ({len(existing)} total):\n"
        + "\n".join(existing[:30]) + "\n"
        f"{more}\n\n"
        "Project Patterns:\n"
        f"- UI Library: {patterns['ui_library']}\n"
        f"- Styling: {patterns['styling']}\n"
        f"- Forms: {patterns['form_library']}\n"
        f"- State Management: {patterns['state_management']}\n"
        f"- Common Components: {', '.join(patterns['common_components'][:5])}\n\n"
        "Import Patterns (Follow these):\n"
        + "\n".join(patterns["import_patterns"][:3]) + "\n\n"
        f"{_RULE}\n"
    )


# ── Post-processing ────────────────────────────────────


def normalize_path(path: str) -> str:
    """Key used to spot aliases such as hero-section.tsx vs HeroSection.tsx."""
    *dirs, filename = path.split("/")
    stem, dot, ext = filename.rpartition(".")
    if not dot:
        stem, ext = filename, ""
    key = stem.lower().replace("-", "").replace("_", "")
    if ext:
        key = f"{key}.{ext.lower()}"
    return "/".join([d.lower() for d in dirs] + [key])


def post_process(data: dict, context: SmartContext, decision: DecisionResult) -> TwoAgentResult:
    """Reconcile paths with the existing project, fix inlined components, validate."""
    existing = context.previous_files
    modified: dict[str, str] = dict(data.get("modifiedFiles") or {})
    new: dict[str, str] = {}

    aliases = {normalize_path(p): p for p in existing}

    for path, content in (data.get("newFiles") or {}).items():
        if path in existing:
            logger.info("Reconciling %s: already exists, treating as modification", path)
            modified[path] = content
            continue
        candidate = aliases.get(normalize_path(path))
        if candidate and candidate != path:
            logger.info("Reconciling %s → %s (alias)", path, candidate)
            modified[candidate] = content
        else:
            new[path] = content

    if decision.mode == "link_mode" and not new:
        for path, code in list(modified.items()):
            if not path.replace("\\", "/").endswith("app/page.tsx"):
                continue
            match = INLINE_COMPONENT_RE.search(code)
            if not match:
                continue
            name = match.group(1)
            extracted = extract_inline_component(code, name)
            if extracted is None:
                logger.error("Failed to extract inline component %s from %s", name, path)
                continue
            component_code, parent_code = extracted
            new[f"components/{to_kebab_case(name)}.tsx"] = component_code
            modified[path] = parent_code
            logger.warning("Extracted inlined component %s from %s", name, path)

    all_files = {**existing, **modified, **new}
    validated_modified = {}
    validated_new = {}
    fixed_imports = 0

    for target, files in ((validated_modified, modified), (validated_new, new)):
        for path, code in files.items():
            validation = validate_and_fix(code, path, all_files)
            fixed_imports += len(validation.added_imports)
            for warning in validation.warnings:
                logger.debug("%s: %s", path, warning)
            for error in validation.errors:
                logger.warning("%s: %s", path, error)
            target[path] = validation.fixed_code

    if fixed_imports:
        logger.info("Auto-fixed %d missing imports across generated files", fixed_imports)

    return TwoAgentResult(
        modified_files=validated_modified,
        new_files=validated_new,
        deleted_files=list(data.get("deletedFiles") or []),
        changes=list(data.get("changes") or []),
        description=data.get("description") or "Generated code",
    )


def extract_inline_component(code: str, name: str) -> tuple[str, str] | None:
    """Cut `function Name(...) {...}` out of a page into its own module.

    Returns (component_code, parent_code) or None when no balanced body is found.
    """
    match = re.search(rf"function\s+{name}\s*\([^)]*\)[^{{]*\{{", code)
    if not match:
        return None

    start = match.start()
    depth = 0
    end = None
    for i in range(start, len(code)):
        if code[i] == "{":
            depth += 1
        elif code[i] == "}":
            depth -= 1
            if depth == 0:
                end = i + 1
                break
    if end is None:
        return None

    component_code = f"{EXTRACTED_COMPONENT_HEADER}export {code[start:end]}\n"

    lines = code[:start].split("\n")
    insert_at = 0
    for i in range(len(lines) - 1, -1, -1):
        if "import " in lines[i] or '"use client"' in lines[i] or "'use client'" in lines[i]:
            insert_at = i + 1
            break
    lines.insert(insert_at, f'import {{ {name} }} from "@/components/{to_kebab_case(name)}";')

    return component_code, "\n".join(lines) + code[end:]


def to_kebab_case(name: str) -> str:
    name = re.sub(r"([a-z0-9])([A-Z])", r"\1-\2", name)
    name = re.sub(r"([A-Z])([A-Z][a-z])", r"\1-\2", name)
    return name.lower()


# ── Project detection ──────────────────────────────────


def detect_project_type(files: dict[str, str]) -> str:
    paths = list(files)
    if any("next.config" in p for p in paths):
        return "Next.js"
    if any("vite.config" in p for p in paths):
        return "React (Vite)"
    if any("vue.config" in p for p in paths):
        return "Vue.js"
    if any("angular.json" in p for p in paths):
        return "Angular"
    return "Next.js"


def detect_framework(files: dict[str, str]) -> str:
    paths = list(files)
    if any(p.startswith("app/") and p.endswith("/page.tsx") for p in paths):
        return "Next.js App Router"
    if any(p.startswith("pages/") and p.endswith(".tsx") for p in paths):
        return "Next.js Pages Router"
    return "Next.js App Router"


def analyze_project_patterns(files: dict[str, str]) -> dict:
    contents = "\n".join(c for c in files.values() if isinstance(c, str))

    import_patterns: list[str] = []
    for content in files.values():
        if not isinstance(content, str):
            continue
        for source in IMPORT_SOURCE_RE.findall(content):
            if source.startswith(("@/", "./")) and source not in import_patterns:
                import_patterns.append(source)

    return {
        "ui_library": "shadcn/ui" if "shadcn" in contents or "@/components/ui" in contents else "none",
        "styling": "Tailwind CSS" if "tailwindcss" in contents or "className=" in contents else "CSS",
        "form_library": "react-hook-form" if "react-hook-form" in contents else "none",
        "state_management": "Zustand" if "zustand" in contents else "React hooks",
        "common_components": [p for p in files if "components/" in p][:10],
        "import_patterns": import_patterns[:10],
    }
