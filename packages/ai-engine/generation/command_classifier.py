"""Classify a prompt into the kind of change it asks for.

Keyword patterns handle the common phrasings without a model call; the rest
go to the model through a forced `classify_command` tool call.
"""

import logging
import re
from collections import OrderedDict
from dataclasses import dataclass, field

from adapters import BaseLLMAdapter, Message, ToolDefinition
from apps.api.models.version import CommandType

logger = logging.getLogger(__name__)

KEYWORD_CONFIDENCE = 85
FALLBACK_CONFIDENCE = 50
CACHE_MAX_SIZE = 1000

# Checked in order; the first matching type wins.
KEYWORD_PATTERNS: dict[CommandType, list[re.Pattern]] = {
    CommandType.CREATE_FILE: [
        re.compile(r"\b(create|add|new|generate|make|build)\s+(a\s+)?(new\s+)?(file|component|module|endpoint|route|api|service|handler|controller|middleware)\b", re.I),
        re.compile(r"\b(scaffold|setup|initialize|implement)\s+(a\s+)?new\b", re.I),
    ],
    CommandType.MODIFY_FILE: [
        re.compile(r"\b(modify|update|change|edit|alter|adjust|fix|improve|enhance|refactor)\s+(the\s+)?(existing\s+)?(file|code|function|method|class|component)\b", re.I),
        re.compile(r"\b(add|include|insert)\s+(to|in|into)\s+(the\s+)?(existing|current)\b", re.I),
        re.compile(r"\b(remove|delete)\s+(from|in)\s+(the\s+)?(existing|current)\b", re.I),
    ],
    CommandType.DELETE_FILE: [
        re.compile(r"\b(delete|remove|drop)\s+(the\s+)?(file|component|module|endpoint|route)\b", re.I),
        re.compile(r"\b(get\s+rid\s+of|eliminate|erase)\s+(the\s+)?(file|component)\b", re.I),
    ],
    CommandType.REFACTOR_CODE: [
        re.compile(r"\b(refactor|restructure|reorganize|optimize|clean\s*up|rewrite)\b", re.I),
        re.compile(r"\b(improve|enhance)\s+(the\s+)?(code|structure|architecture|organization)\b", re.I),
        re.compile(r"\b(convert|migrate|transform)\s+.+\s+(to|into)\b", re.I),
    ],
    CommandType.GENERATE_API: [
        re.compile(r"\b(create|generate|build|make)\s+(an\s+|a\s+)?(api|rest\s*api|graphql|endpoint|backend|server)\b", re.I),
        re.compile(r"\b(api|rest\s*api)\s+for\b", re.I),
        re.compile(r"\bI\s+need\s+(an\s+|a\s+)?(api|backend)\b", re.I),
    ],
}

FILE_NAME_RE = re.compile(r"\b[\w-]+\.\w+\b")
QUOTED_RE = re.compile(r"""["']([^"']+)["']""")

CLASSIFY_TOOL = ToolDefinition(
    name="classify_command",
    description="Classify the user command and extract relevant information",
    parameters={
        "type": "object",
        "properties": {
            "command_type": {
                "type": "string",
                "enum": [t.value for t in CommandType],
                "description": "The type of command",
            },
            "confidence": {
                "type": "number",
                "description": "Confidence level 0-100",
                "minimum": 0,
                "maximum": 100,
            },
            "should_create_new_version": {
                "type": "boolean",
                "description": "Whether this command should create a new version",
            },
            "entities": {
                "type": "array",
                "items": {"type": "string"},
                "description": "Extracted file names, function names, or other entities mentioned",
            },
            "reasoning": {
                "type": "string",
                "description": "Brief explanation of the classification",
            },
        },
        "required": ["command_type", "confidence", "should_create_new_version", "entities", "reasoning"],
    },
)

SYSTEM_PROMPT = """You are a command classifier for a code generation system. Analyze user prompts and classify them into one of these categories:
- CREATE_FILE: User wants to create new files/components/features
- MODIFY_FILE: User wants to modify existing files/code
- DELETE_FILE: User wants to delete/remove files
- REFACTOR_CODE: User wants to restructure/optimize existing code
- GENERATE_API: User wants to generate a complete API/backend

Also determine if this should create a new version (usually yes, unless it's a very minor change).
Extract any mentioned file names, function names, or entities.

Current files in project: {files}"""


@dataclass
class CommandClassification:
    type: CommandType
    confidence: float                      # 0 - 100
    should_create_new_version: bool = True
    entities: list[str] = field(default_factory=list)
    reasoning: str = ""

    def to_dict(self) -> dict:
        return {
            "type": self.type.value,
            "confidence": self.confidence,
            "shouldCreateNewVersion": self.should_create_new_version,
            "entities": self.entities,
            "reasoning": self.reasoning,
        }


def keyword_classify(prompt: str) -> CommandType | None:
    normalized = prompt.lower().strip()
    for command_type, patterns in KEYWORD_PATTERNS.items():
        if any(p.search(normalized) for p in patterns):
            return command_type
    return None


def extract_entities(prompt: str) -> list[str]:
    """File names and quoted strings mentioned in the prompt, deduplicated."""
    found = FILE_NAME_RE.findall(prompt) + QUOTED_RE.findall(prompt)
    return list(dict.fromkeys(found))


def should_create_new_version(command_type: CommandType) -> bool:
    return command_type != CommandType.DELETE_FILE


class CommandClassifier:
    """Keyword rules first, model second.

    Results are cached per normalised prompt; once the cache is full the
    oldest entry is evicted.
    """

    def __init__(self, adapter: BaseLLMAdapter | None = None, max_cache_size: int = CACHE_MAX_SIZE):
        self.adapter = adapter
        self.max_cache_size = max_cache_size
        self._cache: OrderedDict[str, CommandClassification] = OrderedDict()

    async def classify(self, prompt: str, current_files: list[str] | None = None) -> CommandClassification:
        key = prompt.lower().strip()
        if key in self._cache:
            return self._cache[key]

        command_type = keyword_classify(prompt)
        if command_type is not None:
            result = CommandClassification(
                type=command_type,
                confidence=KEYWORD_CONFIDENCE,
                should_create_new_version=True,
                entities=extract_entities(prompt),
                reasoning="Keyword pattern match",
            )
        else:
            result = await self.ai_classify(prompt, current_files or [])

        self._remember(key, result)
        return result

    async def ai_classify(self, prompt: str, current_files: list[str]) -> CommandClassification:
        try:
            if self.adapter is None:
                raise RuntimeError("No LLM adapter configured for classification")

            files = ", ".join(current_files) if current_files else "none (new project)"
            response = await self.adapter.complete(
                messages=[
                    Message(role="system", content=SYSTEM_PROMPT.format(files=files)),
                    Message(role="user", content=prompt),
                ],
                tools=[CLASSIFY_TOOL],
                tool_choice=CLASSIFY_TOOL.name,
                temperature=0.3,
            )
            if not response.tool_calls:
                raise ValueError("No function call in model response")

            args = response.tool_calls[0].arguments
            return CommandClassification(
                type=CommandType(args["command_type"]),
                confidence=float(args.get("confidence", 0)),
                should_create_new_version=bool(args.get("should_create_new_version", True)),
                entities=list(args.get("entities") or []),
                reasoning=args.get("reasoning") or "AI classification",
            )
        except Exception as e:
            logger.warning("AI command classification failed: %s", e)
            return CommandClassification(
                type=CommandType.GENERATE_API,
                confidence=FALLBACK_CONFIDENCE,
                should_create_new_version=True,
                entities=[],
                reasoning="Fallback classification due to error",
            )

    def clear_cache(self) -> None:
        self._cache.clear()

    @property
    def cache_size(self) -> int:
        return len(self._cache)

    def _remember(self, key: str, result: CommandClassification) -> None:
        if key not in self._cache and len(self._cache) >= self.max_cache_size:
            self._cache.popitem(last=False)
        self._cache[key] = result
