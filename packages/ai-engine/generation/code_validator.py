"""Post-generation checks for React/Next.js files.

Fixes the mistakes models make most often (missing shadcn/ui imports,
missing hook imports, missing "use client") and reports what it cannot
fix. No AST parsing; everything here is regex-level.
"""

import logging
import re
from dataclasses import dataclass, field

logger = logging.getLogger(__name__)

# Component name → shadcn/ui module
SHADCN_COMPONENTS = {
    "Dialog": "@/components/ui/dialog",
    "DialogContent": "@/components/ui/dialog",
    "DialogHeader": "@/components/ui/dialog",
    "DialogTitle": "@/components/ui/dialog",
    "DialogDescription": "@/components/ui/dialog",
    "DialogFooter": "@/components/ui/dialog",
    "DialogTrigger": "@/components/ui/dialog",
    "Button": "@/components/ui/button",
    "Input": "@/components/ui/input",
    "Label": "@/components/ui/label",
    "Card": "@/components/ui/card",
    "CardContent": "@/components/ui/card",
    "CardHeader": "@/components/ui/card",
    "CardTitle": "@/components/ui/card",
    "CardDescription": "@/components/ui/card",
    "CardFooter": "@/components/ui/card",
    "Textarea": "@/components/ui/textarea",
    "Select": "@/components/ui/select",
    "SelectContent": "@/components/ui/select",
    "SelectItem": "@/components/ui/select",
    "SelectTrigger": "@/components/ui/select",
    "SelectValue": "@/components/ui/select",
    "Checkbox": "@/components/ui/checkbox",
    "RadioGroup": "@/components/ui/radio-group",
    "RadioGroupItem": "@/components/ui/radio-group",
    "Switch": "@/components/ui/switch",
    "Tabs": "@/components/ui/tabs",
    "TabsContent": "@/components/ui/tabs",
    "TabsList": "@/components/ui/tabs",
    "TabsTrigger": "@/components/ui/tabs",
    "Toast": "@/components/ui/toast",
    "Toaster": "@/components/ui/toaster",
    "Avatar": "@/components/ui/avatar",
    "AvatarImage": "@/components/ui/avatar",
    "AvatarFallback": "@/components/ui/avatar",
    "Badge": "@/components/ui/badge",
    "Alert": "@/components/ui/alert",
    "AlertTitle": "@/components/ui/alert",
    "AlertDescription": "@/components/ui/alert",
    "Separator": "@/components/ui/separator",
    "Skeleton": "@/components/ui/skeleton",
    "Table": "@/components/ui/table",
    "TableBody": "@/components/ui/table",
    "TableCell": "@/components/ui/table",
    "TableHead": "@/components/ui/table",
    "TableHeader": "@/components/ui/table",
    "TableRow": "@/components/ui/table",
}

REACT_HOOKS = ("useState", "useEffect", "useCallback", "useMemo", "useRef", "useContext")

CLIENT_FEATURES = [
    re.compile(rf"\b{name}\b")
    for name in (
        "useState", "useEffect", "useCallback", "useMemo", "useRef",
        "onClick", "onChange", "onSubmit", "onKeyDown",
        "window", "document", "addEventListener",
    )
]

USE_CLIENT_RE = re.compile(r"""^["']use client["']""")
JSX_COMPONENT_RE = re.compile(r"<([A-Z][a-zA-Z0-9]*)")
NAMED_IMPORT_RE = re.compile(r"import\s+\{([^}]+)\}\s+from")
DEFAULT_IMPORT_RE = re.compile(r"import\s+([A-Z][a-zA-Z0-9]*)\s+from")
REACT_IMPORT_RE = re.compile(r"""import\s+.*from\s+['"]react['"]""")

# Capitalised tags, skipping TypeScript generics such as useState<User>().
# Attribute values may hold quoted strings or one level of {expression}.
JSX_OPEN_RE = re.compile(
    r"""(?<![\w$])<([A-Z][A-Za-z0-9.]*)((?:[^>"'{}]|"[^"]*"|'[^']*'|\{[^{}]*\})*)>"""
)
JSX_CLOSE_RE = re.compile(r"</([A-Z][A-Za-z0-9.]*)\s*>")


@dataclass
class ValidationResult:
    is_valid: bool
    fixed_code: str
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    added_imports: list[str] = field(default_factory=list)


def validate_and_fix(code: str, filename: str, all_files: dict[str, str] | None = None) -> ValidationResult:
    """Auto-fix what can be fixed, then report remaining problems.

    `all_files` is the rest of the project; reserved for cross-file checks.
    """
    errors: list[str] = []
    warnings: list[str] = []
    added_imports: list[str] = []
    fixed = code

    if is_react_file(filename):
        fixed, added = _fix_react_imports(fixed, filename)
        added_imports.extend(added)

    if needs_use_client(fixed) and not has_use_client(fixed):
        fixed = f'"use client";\n\n{fixed}'
        added_imports.append('"use client" directive')

    errors.extend(check_jsx_balance(fixed))

    unused = find_unused_imports(fixed)
    if unused:
        warnings.append(f"Unused imports: {', '.join(unused)}")

    return ValidationResult(
        is_valid=not errors,
        fixed_code=fixed,
        errors=errors,
        warnings=warnings,
        added_imports=added_imports,
    )


def is_react_file(filename: str) -> bool:
    return filename.endswith((".tsx", ".jsx"))


def needs_use_client(code: str) -> bool:
    return any(p.search(code) for p in CLIENT_FEATURES)


def has_use_client(code: str) -> bool:
    return bool(USE_CLIENT_RE.match(code.strip()))


def find_used_components(code: str) -> list[str]:
    return list(dict.fromkeys(JSX_COMPONENT_RE.findall(code)))


def find_imported_names(code: str) -> set[str]:
    names = set()
    for group in NAMED_IMPORT_RE.findall(code):
        for part in group.split(","):
            name = _local_name(part)
            if name:
                names.add(name)
    names.update(DEFAULT_IMPORT_RE.findall(code))
    return names


def check_jsx_balance(code: str) -> list[str]:
    """Compare non-self-closing opening tags with closing tags."""
    opening = sum(1 for m in JSX_OPEN_RE.finditer(code) if not m.group(2).rstrip().endswith("/"))
    closing = len(JSX_CLOSE_RE.findall(code))
    if opening != closing:
        return [f"Mismatched JSX tags: {opening} opening vs {closing} closing"]
    return []


def find_unused_imports(code: str) -> list[str]:
    unused = []
    for match in NAMED_IMPORT_RE.finditer(code):
        rest = code[match.end():]
        for part in match.group(1).split(","):
            name = _local_name(part)
            if name and not re.search(rf"\b{re.escape(name)}\b", rest):
                unused.append(name)
    return unused


def insertion_index(lines: list[str]) -> int:
    """First line after the "use client" directive and leading blank lines."""
    index = 0
    while index < len(lines) and (
        '"use client"' in lines[index]
        or "'use client'" in lines[index]
        or not lines[index].strip()
    ):
        index += 1
    return index


def _local_name(import_part: str) -> str:
    # "type Foo" → "Foo", "Foo as Bar" → "Bar"
    part = import_part.strip()
    if part.startswith("type "):
        part = part[5:].strip()
    if " as " in part:
        part = part.split(" as ", 1)[1].strip()
    return part


def _fix_react_imports(code: str, filename: str) -> tuple[str, list[str]]:
    added: list[str] = []

    imported = find_imported_names(code)
    missing = [
        comp for comp in find_used_components(code)
        if comp not in imported and comp in SHADCN_COMPONENTS
    ]

    if missing:
        groups: dict[str, list[str]] = {}
        for comp in missing:
            groups.setdefault(SHADCN_COMPONENTS[comp], []).append(comp)

        lines = code.split("\n")
        index = insertion_index(lines)
        statements = []
        for path, components in groups.items():
            statements.append(f'import {{ {", ".join(components)} }} from "{path}";')
            added.append(f"{', '.join(components)} from {path}")
        lines[index:index] = statements
        code = "\n".join(lines)
        logger.debug("Added %d missing component imports to %s", len(missing), filename)

    used_hooks = [h for h in REACT_HOOKS if re.search(rf"\b{h}\b", code)]
    if used_hooks and not REACT_IMPORT_RE.search(code):
        lines = code.split("\n")
        index = insertion_index(lines)
        lines.insert(index, f'import {{ {", ".join(used_hooks)} }} from "react";')
        code = "\n".join(lines)
        added.append(f"{', '.join(used_hooks)} from react")
        logger.debug("Added react hooks import to %s", filename)

    return code, added
