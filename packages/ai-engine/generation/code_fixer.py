"""Repairs for runtime errors that generated code tends to hit in the preview.

Runs before files are written to the sandbox. Each pass appends to
`errors` what it found and to `fixes` what it changed.
"""

import logging
import re
from dataclasses import dataclass, field

from .code_validator import SHADCN_COMPONENTS, find_imported_names, find_used_components, insertion_index

logger = logging.getLogger(__name__)

KNOWN_GLOBALS = {
    "window", "document", "console", "process", "require", "module", "exports",
    "React", "useState", "useEffect", "useCallback", "useMemo", "useRef",
    "props", "children", "className", "style", "key", "ref",
    "Array", "Object", "String", "Number", "Boolean", "Date", "Math", "JSON",
    "Promise", "Set", "Map", "Error", "RegExp",
}

HOOKS_RE = re.compile(
    r"\b(useState|useEffect|useCallback|useMemo|useRef|useContext|useReducer|useLayoutEffect)\b"
)
EVENT_HANDLER_RE = re.compile(
    r"\bon(Click|Change|Submit|KeyDown|KeyUp|MouseEnter|MouseLeave|Focus|Blur)\s*="
)
BROWSER_API_RE = re.compile(r"\b(window|document|localStorage|sessionStorage|navigator)\b")
WRONG_USE_CLIENT_RE = re.compile(r"""import\s+["']use client["'];?\s*""")
JSX_VARIABLE_RE = re.compile(r"\{(\w+)(?:\.|\[|\))")


@dataclass
class FixResult:
    fixed: bool
    original_code: str
    fixed_code: str
    errors: list[str] = field(default_factory=list)
    fixes: list[str] = field(default_factory=list)


def fix_code(code: str, filename: str) -> FixResult:
    result = FixResult(fixed=False, original_code=code, fixed_code=code)

    result.fixed_code = _fix_use_client(result.fixed_code, result)
    result.fixed_code = _fix_undefined_variables(result.fixed_code, result)
    result.fixed_code = _fix_missing_imports(result.fixed_code, filename, result)
    result.fixed_code = _check_brackets(result.fixed_code, result)
    result.fixed_code = _fix_react_attributes(result.fixed_code, filename, result)

    result.fixed = bool(result.fixes)
    if result.fixed:
        logger.info("Fixed %d error(s) in %s: %s", len(result.fixes), filename, "; ".join(result.fixes))
    return result


def needs_use_client(code: str) -> bool:
    return bool(HOOKS_RE.search(code) or EVENT_HANDLER_RE.search(code) or BROWSER_API_RE.search(code))


def _fix_use_client(code: str, result: FixResult) -> str:
    if 'import "use client"' in code or "import 'use client'" in code:
        result.errors.append('Incorrect "use client" import statement')
        result.fixes.append('Removed incorrect import "use client" and added correct directive')
        code = WRONG_USE_CLIENT_RE.sub("", code)

    stripped = code.strip()
    has_directive = stripped.startswith('"use client"') or stripped.startswith("'use client'")
    if needs_use_client(code) and not has_directive:
        result.errors.append('Missing "use client" directive for client-side code')
        result.fixes.append('Added "use client" directive at top of file')
        code = '"use client";\n\n' + code

    return code


def _is_declared(name: str, code: str) -> bool:
    patterns = (
        rf"\b(?:const|let|var|function|class)\s+{name}\b",
        rf"\b{name}\s*:",                                   # object key or typed param
        rf"import\s[^;]*\b{name}\b[^;]*from",
        rf"[({{,]\s*{name}\s*[,)}}=]",                      # params, destructuring
        rf"\b{name}\s*=>",
    )
    return any(re.search(p, code) for p in patterns)


def _fix_undefined_variables(code: str, result: FixResult) -> str:
    undefined = []
    for name in JSX_VARIABLE_RE.findall(code):
        if name in KNOWN_GLOBALS or name in undefined or _is_declared(name, code):
            continue
        undefined.append(name)

    for name in undefined:
        result.errors.append(f"Undefined variable: {name}")
        declaration = _sample_declaration(name, code)
        result.fixes.append(f"Added declaration for undefined variable: {name}")
        index = _import_end(code)
        code = code[:index] + "\n" + declaration + "\n" + code[index:]

    return code


def _sample_declaration(name: str, code: str) -> str:
    if f"{name}.map(" in code:
        match = re.search(rf"{name}\.map\(\((\w+)\)\s*=>\s*[\s\S]*?<(\w+)", code)
        if match:
            if "card" in match.group(2).lower():
                return (
                    f"const {name} = [\n"
                    '  { id: 1, title: "Sample Card 1", description: "Description for card 1" },\n'
                    '  { id: 2, title: "Sample Card 2", description: "Description for card 2" },\n'
                    '  { id: 3, title: "Sample Card 3", description: "Description for card 3" },\n'
                    "];"
                )
            return (
                f"const {name} = [\n"
                '  { id: 1, title: "Item 1" },\n'
                '  { id: 2, title: "Item 2" },\n'
                '  { id: 3, title: "Item 3" },\n'
                "];"
            )
        return f"const {name} = [];"

    if f"{name}." in code or f"{name}[" in code:
        return f"const {name} = {{}};"

    return f"const {name} = undefined;"


def _import_end(code: str) -> int:
    """Character offset just past the directive and import block."""
    lines = code.split("\n")
    last = 0
    for i, line in enumerate(lines):
        stripped = line.strip()
        if stripped in ('"use client";', "'use client';") or stripped.startswith("import "):
            last = i + 1
        elif stripped and not stripped.startswith("//"):
            break
    return len("\n".join(lines[:last]))


def _fix_missing_imports(code: str, filename: str, result: FixResult) -> str:
    if not filename.endswith((".tsx", ".jsx")):
        return code

    imported = find_imported_names(code)
    missing = [c for c in find_used_components(code) if c not in imported and c in SHADCN_COMPONENTS]
    if not missing:
        return code

    groups: dict[str, list[str]] = {}
    for comp in missing:
        groups.setdefault(SHADCN_COMPONENTS[comp], []).append(comp)

    lines = code.split("\n")
    index = insertion_index(lines)
    lines[index:index] = [
        f'import {{ {", ".join(names)} }} from "{path}";' for path, names in groups.items()
    ]
    result.errors.append(f"Missing imports: {', '.join(missing)}")
    result.fixes.append(f"Added imports for: {', '.join(missing)}")
    return "\n".join(lines)


def _check_brackets(code: str, result: FixResult) -> str:
    # Reported only; guessing where a brace belongs does more harm than good.
    for open_char, close_char, label in (("{", "}", "braces"), ("(", ")", "parentheses")):
        opened, closed = code.count(open_char), code.count(close_char)
        if opened != closed:
            result.errors.append(f"Unbalanced {label}: {opened} opening vs {closed} closing")
    return code


def _fix_react_attributes(code: str, filename: str, result: FixResult) -> str:
    if not filename.endswith((".tsx", ".jsx")):
        return code

    for wrong, right in (("class", "className"), ("for", "htmlFor")):
        pattern = re.compile(rf"(<[a-zA-Z][^>]*?\s){wrong}=")
        if pattern.search(code):
            code = pattern.sub(rf"\g<1>{right}=", code)
            result.errors.append(f'Invalid JSX attribute "{wrong}"')
            result.fixes.append(f'Replaced {wrong}= with {right}=')
    return code
