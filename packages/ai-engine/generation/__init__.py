"""Two-agent code generation: plan with a fast model, write with a strong one.

    from generation import DecisionAgent, TwoAgentOrchestrator, SmartContextBuilder

    context = await SmartContextBuilder(file_index).build_smart_context(db, project_id, prompt)
    orchestrator = TwoAgentOrchestrator(DecisionAgent(decision_llm), coding_llm)
    result = await orchestrator.execute(prompt, context, project_id=str(project_id))
"""

from .api_generator import APIGenerator, api_files, parse_api_output, strip_code_fence
from .code_fixer import FixResult, fix_code
from .code_validator import ValidationResult, validate_and_fix
from .command_classifier import (
    CommandClassification,
    CommandClassifier,
    extract_entities,
    keyword_classify,
    should_create_new_version,
)
from .context_builder import SmartContext, SmartContextBuilder, format_for_prompt, keyword_search
from .decision_agent import DecisionAgent, DecisionResult, fallback_classification
from .orchestrator import (
    TwoAgentOrchestrator,
    TwoAgentResult,
    analyze_project_patterns,
    detect_framework,
    detect_project_type,
    to_kebab_case,
)
from .prompt_loader import build_coding_prompt, build_system_prompt, clear_cache, load_prompt_file

__all__ = [
    "APIGenerator",
    "api_files",
    "parse_api_output",
    "strip_code_fence",
    "FixResult",
    "fix_code",
    "ValidationResult",
    "validate_and_fix",
    "CommandClassification",
    "CommandClassifier",
    "extract_entities",
    "keyword_classify",
    "should_create_new_version",
    "SmartContext",
    "SmartContextBuilder",
    "format_for_prompt",
    "keyword_search",
    "DecisionAgent",
    "DecisionResult",
    "fallback_classification",
    "TwoAgentOrchestrator",
    "TwoAgentResult",
    "analyze_project_patterns",
    "detect_framework",
    "detect_project_type",
    "to_kebab_case",
    "build_coding_prompt",
    "build_system_prompt",
    "clear_cache",
    "load_prompt_file",
]
