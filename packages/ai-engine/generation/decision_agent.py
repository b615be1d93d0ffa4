"""Decision agent: first half of the two-agent pipeline.

Reads the user's request plus a little project context and returns an
execution plan (intent, mode, tasks) for the coding stage. It never writes
code itself.
"""

import json
import logging
from dataclasses import dataclass, field

from adapters import BaseLLMAdapter, Message

from .prompt_loader import load_prompt_file

logger = logging.getLogger(__name__)

INTENTS = ("CREATE", "MODIFY", "CREATE_AND_LINK", "FIX_ERROR", "QUESTION")

INTENT_MODES = {
    "CREATE": "create_mode",
    "MODIFY": "modify_mode",
    "CREATE_AND_LINK": "link_mode",
    "FIX_ERROR": "error_fix_mode",
    "QUESTION": "question_mode",
}

QUESTION_WORDS = ("what", "how", "why", "when", "where", "which", "who")
MODIFY_WORDS = ("update", "change", "modify", "edit", "refactor")


@dataclass
class DecisionResult:
    """Execution plan handed to the coding stage."""
    intent: str                                  # One of INTENTS
    confidence: float                            # 0.0 - 1.0
    summary: str
    mode: str                                    # One of prompt_loader.MODES
    entities: dict = field(default_factory=dict)
    tasks: list[str] = field(default_factory=list)
    critical_reminders: list[str] = field(default_factory=list)
    file_targets: dict = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: dict) -> "DecisionResult":
        """Build from the model's JSON (camelCase keys)."""
        intent = str(data.get("intent", "")).upper()
        if intent not in INTENTS:
            raise ValueError(f"Unknown intent: {data.get('intent')!r}")

        mode = data.get("mode") or INTENT_MODES[intent]
        if mode not in INTENT_MODES.values():
            mode = INTENT_MODES[intent]

        return cls(
            intent=intent,
            confidence=float(data.get("confidence", 0.0)),
            summary=data.get("summary", ""),
            mode=mode,
            entities=data.get("entities") or {},
            tasks=list(data.get("tasks") or []),
            critical_reminders=list(data.get("criticalReminders") or []),
            file_targets=data.get("fileTargets") or {},
        )

    def to_dict(self) -> dict:
        return {
            "intent": self.intent,
            "confidence": self.confidence,
            "summary": self.summary,
            "mode": self.mode,
            "entities": self.entities,
            "tasks": self.tasks,
            "criticalReminders": self.critical_reminders,
            "fileTargets": self.file_targets,
        }


class DecisionAgent:
    """Classify a request and plan the work.

        agent = DecisionAgent(adapter)
        decision = await agent.analyze("Add a pricing page", existing_files=[...])
        decision.mode  # "create_mode"
    """

    def __init__(self, adapter: BaseLLMAdapter, temperature: float = 0.3):
        self.adapter = adapter
        self.temperature = temperature

    async def analyze(
        self,
        prompt: str,
        conversation_history: list[dict] | None = None,
        existing_files: list[str] | None = None,
        project_type: str = "Next.js App Router",
    ) -> DecisionResult:
        """Ask the decision model for a plan; fall back to keywords on any failure."""
        conversation_history = conversation_history or []
        existing_files = existing_files or []

        logger.info("Decision agent analyzing request: %.80s", prompt)

        context = self.build_context(conversation_history, existing_files, project_type)

        try:
            response = await self.adapter.complete(
                messages=[
                    Message(role="system", content=load_prompt_file("decision-agent.txt")),
                    Message(role="user", content=f"{context}\n\nUser Request: {prompt}"),
                ],
                temperature=self.temperature,
                json_mode=True,
            )
            decision = DecisionResult.from_dict(json.loads(response.content or "{}"))
        except Exception as e:
            logger.warning("Decision agent failed, using keyword fallback: %s", e)
            return fallback_classification(prompt)

        logger.info(
            "Decision agent classified as %s (confidence %.2f, mode %s, %d tasks)",
            decision.intent,
            decision.confidence,
            decision.mode,
            len(decision.tasks),
        )
        return decision

    @staticmethod
    def build_context(
        conversation_history: list[dict],
        existing_files: list[str],
        project_type: str,
    ) -> str:
        if existing_files:
            files_line = ", ".join(existing_files[:20])
        else:
            files_line = "New project (no files yet)"
        more_line = f"... and {len(existing_files) - 20} more files" if len(existing_files) > 20 else ""

        recent = "\n".join(
            f"{msg.get('role', 'user')}: {str(msg.get('content', ''))[:200]}"
            for msg in conversation_history[-3:]
        )

        return (
            "\n<context>\n"
            f"Project Type: {project_type}\n"
            f"Existing Files: {files_line}\n"
            f"{more_line}\n"
            "\n"
            "Recent Conversation:\n"
            f"{recent}\n"
            "</context>\n"
        )


def fallback_classification(prompt: str) -> DecisionResult:
    """Keyword rules used when the model is unavailable or returns garbage."""
    lower = prompt.lower()

    if any(w in lower for w in ("link", "connect", "and")):
        if any(w in lower for w in ("create", "add", "build")):
            return DecisionResult(
                intent="CREATE_AND_LINK",
                confidence=0.7,
                summary="Create component and link to existing element",
                mode="link_mode",
                tasks=[
                    "1. Create the requested component",
                    "2. Find the target element to link to",
                    "3. Modify parent component to import and use new component",
                ],
                critical_reminders=[
                    "🚨 This is a CREATE + LINK task - do NOT only create!",
                    "🚨 MUST modify parent component to link",
                ],
            )

    if any(w in lower for w in ("error", "fix", "bug")):
        return DecisionResult(
            intent="FIX_ERROR",
            confidence=0.8,
            summary="Fix error in existing code",
            mode="error_fix_mode",
            tasks=[
                "1. Locate the error in the specified file",
                "2. Identify root cause",
                "3. Apply minimal fix",
            ],
            critical_reminders=[
                "🚨 ONLY fix the error - do NOT add features",
                "🚨 Make minimal changes",
            ],
        )

    if any(w in lower for w in QUESTION_WORDS) or "?" in prompt:
        return DecisionResult(
            intent="QUESTION",
            confidence=0.8,
            summary="Answer user question",
            mode="question_mode",
            tasks=[],
            critical_reminders=["🚨 Do NOT modify any files - just answer the question"],
        )

    if any(w in lower for w in MODIFY_WORDS):
        return DecisionResult(
            intent="MODIFY",
            confidence=0.7,
            summary="Modify existing code",
            mode="modify_mode",
            tasks=[
                "1. Find the file to modify",
                "2. Apply requested changes",
                "3. Preserve existing functionality",
            ],
            critical_reminders=[
                "🚨 MODIFY existing files - do NOT create new ones",
                "🚨 Preserve all other functionality",
            ],
        )

    return DecisionResult(
        intent="CREATE",
        confidence=0.6,
        summary="Create new component or feature",
        mode="create_mode",
        tasks=[
            "1. Create the requested component/feature",
            "2. Include all necessary code and imports",
            "3. Follow project patterns",
        ],
        critical_reminders=["🚨 Create complete, working code"],
    )
