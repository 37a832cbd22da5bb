"""Tree-sitter powered module parser for JavaScript and TypeScript sources."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Optional, Sequence

import tree_sitter_typescript
from tree_sitter import Language, Node, Parser

from ..errors import AnalysisError
from ..logging import get_logger
from ..models import InterfaceField

logger = get_logger("analyzers.parser")

STRICT = "typescript"
TOLERANT = "tsx"

_GRAMMARS = {
    STRICT: tree_sitter_typescript.language_typescript,
    TOLERANT: tree_sitter_typescript.language_tsx,
}

_MARKUP_SUFFIXES = (".tsx", ".jsx")
_PLAIN_JS_SUFFIXES = (".js", ".mjs", ".cjs")
# Closing tags, self-closing tags and fragments.
_MARKUP_HINT = re.compile(r"</[A-Za-z][\w.]*\s*>|<[A-Za-z][\w.]*(?:\s[^<>]*)?/>|<>|</>")

_FUNCTION_NODES = {
    "function_declaration",
    "generator_function_declaration",
    "function_expression",
    "function",
    "generator_function",
}
_CLASS_NODES = {"class_declaration", "abstract_class_declaration", "class"}
_VARIABLE_NODES = {"lexical_declaration", "variable_declaration"}
_MARKUP_NODES = {"jsx_element", "jsx_self_closing_element", "jsx_fragment"}

RESERVED_WORDS = frozenset(
    {
        "if",
        "for",
        "while",
        "switch",
        "catch",
        "return",
        "typeof",
        "instanceof",
        "function",
        "new",
        "delete",
        "void",
        "await",
        "yield",
        "super",
        "import",
        "require",
        "this",
        "do",
        "else",
        "case",
        "throw",
        "with",
        "in",
        "of",
    }
)


@dataclass
class ImportBinding:
    """One import statement: the module specifier and the local names it binds."""

    source: str
    names: List[str] = field(default_factory=list)


@dataclass
class ParsedModule:
    """Structural facts extracted from a single source file."""

    strategy: str
    is_client: bool = False
    imports: List[ImportBinding] = field(default_factory=list)
    default_export: Optional[str] = None
    functions: List[str] = field(default_factory=list)
    constants: List[str] = field(default_factory=list)
    classes: List[str] = field(default_factory=list)
    exports: List[str] = field(default_factory=list)
    calls: List[str] = field(default_factory=list)
    member_calls: List[str] = field(default_factory=list)
    interfaces: Dict[str, List[InterfaceField]] = field(default_factory=dict)
    has_markup: bool = False
    description: Optional[str] = None


class ModuleParser:
    """Parses source text with a strict grammar and retries with a markup-tolerant one."""

    def __init__(self) -> None:
        self._parsers: Dict[str, Parser] = {}

    def strategies_for(self, path: str, content: str) -> Sequence[str]:
        lowered = path.lower()
        if lowered.endswith(_MARKUP_SUFFIXES):
            return (TOLERANT,)
        # The content hint only reorders plain JavaScript.
        if lowered.endswith(_PLAIN_JS_SUFFIXES) and _MARKUP_HINT.search(content):
            return (TOLERANT, STRICT)
        return (STRICT, TOLERANT)

    def parse(self, path: str, content: str) -> ParsedModule:
        """Return the parsed module or raise AnalysisError when no strategy succeeds."""
        source_bytes = content.encode("utf-8")
        for strategy in self.strategies_for(path, content):
            tree = self._get_parser(strategy).parse(source_bytes)
            if not tree.root_node.has_error:
                return _ModuleCollector(source_bytes, strategy).collect(tree.root_node)
            logger.debug("Parse errors in %s with %s grammar", path, strategy)
        raise AnalysisError(f"Unable to parse {path}")

    def _get_parser(self, strategy: str) -> Parser:
        parser = self._parsers.get(strategy)
        if parser is None:
            parser = Parser(Language(_GRAMMARS[strategy]()))
            self._parsers[strategy] = parser
        return parser


class _ModuleCollector:
    """Walks a syntax tree once and fills a ParsedModule."""

    def __init__(self, source_bytes: bytes, strategy: str) -> None:
        self._source = source_bytes
        self.module = ParsedModule(strategy=strategy)

    def collect(self, root: Node) -> ParsedModule:
        statements = root.named_children
        self.module.is_client = self._has_use_client(statements)
        self.module.description = self._module_description(statements)
        for statement in statements:
            self._visit_statement(statement)
        self._scan_expressions(root)
        self.module.exports = _dedupe(self.module.exports)
        return self.module

    # ------------------------------------------------------------------
    # Top-level statements

    def _visit_statement(self, node: Node) -> None:
        kind = node.type
        if kind == "import_statement":
            self._visit_import(node)
        elif kind == "export_statement":
            self._visit_export(node)
        else:
            self._visit_declaration(node, exported=False)

    def _visit_import(self, node: Node) -> None:
        source_node = node.child_by_field_name("source")
        if source_node is None:
            return
        binding = ImportBinding(source=_unquote(self._text(source_node)))
        for clause in node.named_children:
            if clause.type != "import_clause":
                continue
            for child in clause.named_children:
                if child.type == "identifier":
                    binding.names.append(self._text(child))
                elif child.type == "named_imports":
                    for specifier in child.named_children:
                        if specifier.type != "import_specifier":
                            continue
                        name_node = specifier.child_by_field_name("name")
                        if name_node is not None:
                            binding.names.append(self._text(name_node))
        self.module.imports.append(binding)

    def _visit_export(self, node: Node) -> None:
        is_default = any(child.type == "default" for child in node.children)
        declaration = node.child_by_field_name("declaration")
        value = node.child_by_field_name("value")

        if declaration is not None:
            names = self._visit_declaration(declaration, exported=True)
            if is_default and names and self.module.default_export is None:
                self.module.default_export = names[0]
            return

        if value is not None and is_default:
            name = self._default_value_name(value)
            if name:
                self.module.default_export = self.module.default_export or name
                self.module.exports.append(name)
            return

        for child in node.named_children:
            if child.type != "export_clause":
                continue
            for specifier in child.named_children:
                if specifier.type != "export_specifier":
                    continue
                name_node = specifier.child_by_field_name("name")
                alias_node = specifier.child_by_field_name("alias")
                if name_node is None:
                    continue
                local = self._text(name_node)
                exported = self._text(alias_node) if alias_node is not None else local
                if exported == "default":
                    self.module.default_export = self.module.default_export or local
                    self.module.exports.append(local)
                else:
                    self.module.exports.append(exported)

    def _visit_declaration(self, node: Node, *, exported: bool) -> List[str]:
        kind = node.type
        names: List[str] = []
        if kind in _FUNCTION_NODES:
            name = self._field_text(node, "name")
            if name:
                self.module.functions.append(name)
                names.append(name)
        elif kind in _CLASS_NODES:
            name = self._field_text(node, "name")
            if name:
                self.module.classes.append(name)
                names.append(name)
        elif kind in _VARIABLE_NODES:
            for declarator in node.named_children:
                if declarator.type != "variable_declarator":
                    continue
                name_node = declarator.child_by_field_name("name")
                if name_node is None or name_node.type != "identifier":
                    continue
                name = self._text(name_node)
                self.module.constants.append(name)
                names.append(name)
        elif kind == "interface_declaration":
            name = self._field_text(node, "name")
            body = node.child_by_field_name("body")
            if name and body is not None:
                self.module.interfaces[name] = self._members(body)
                names.append(name)
        elif kind == "type_alias_declaration":
            name = self._field_text(node, "name")
            value = node.child_by_field_name("value")
            if name and value is not None and value.type == "object_type":
                self.module.interfaces[name] = self._members(value)
            if name:
                names.append(name)
        if exported:
            self.module.exports.extend(names)
        return names

    def _default_value_name(self, value: Node) -> Optional[str]:
        if value.type == "identifier":
            return self._text(value)
        if value.type in _FUNCTION_NODES or value.type in _CLASS_NODES:
            return self._field_text(value, "name")
        if value.type == "call_expression":
            # export default memo(Button) / observer(Button)
            arguments = value.child_by_field_name("arguments")
            if arguments is not None:
                for argument in arguments.named_children:
                    if argument.type == "identifier":
                        return self._text(argument)
        return None

    def _members(self, body: Node) -> List[InterfaceField]:
        fields: List[InterfaceField] = []
        for member in body.named_children:
            if member.type not in {"property_signature", "method_signature"}:
                continue
            name_node = member.child_by_field_name("name")
            if name_node is None:
                continue
            optional = any(child.type == "?" for child in member.children)
            if member.type == "property_signature":
                type_node = member.child_by_field_name("type")
                type_text = _strip_annotation(self._text(type_node)) if type_node else "any"
            else:
                type_text = self._text(member)[name_node.end_byte - member.start_byte :]
                type_text = type_text.lstrip("?").strip().rstrip(";,")
            fields.append(
                InterfaceField(
                    name=_unquote(self._text(name_node)),
                    type=type_text,
                    required=not optional,
                    description=self._member_doc(member),
                )
            )
        return fields

    def _member_doc(self, member: Node) -> Optional[str]:
        previous = member.prev_named_sibling
        if previous is None or previous.type != "comment":
            return None
        text = self._text(previous)
        if not text.startswith("/**"):
            return None
        return parse_jsdoc(text) or None

    # ------------------------------------------------------------------
    # Whole-tree scans

    def _scan_expressions(self, root: Node) -> None:
        calls: List[str] = []
        member_calls: List[str] = []
        for node in _walk(root):
            if node.type in _MARKUP_NODES:
                self.module.has_markup = True
            elif node.type == "call_expression":
                callee = node.child_by_field_name("function")
                if callee is None:
                    continue
                if callee.type == "identifier":
                    name = self._text(callee)
                    if name[:1].islower() and name not in RESERVED_WORDS:
                        calls.append(name)
                elif callee.type == "member_expression":
                    prop = callee.child_by_field_name("property")
                    if prop is not None:
                        member_calls.append(self._text(prop))
        self.module.calls = _dedupe(calls)
        self.module.member_calls = _dedupe(member_calls)

    def _has_use_client(self, statements: Sequence[Node]) -> bool:
        for statement in statements:
            if statement.type == "comment":
                continue
            if statement.type != "expression_statement":
                return False
            expression = statement.named_children[0] if statement.named_children else None
            return expression is not None and expression.type == "string" and _unquote(
                self._text(expression)
            ) == "use client"
        return False

    def _module_description(self, statements: Sequence[Node]) -> Optional[str]:
        pending: List[str] = []
        for statement in statements:
            if statement.type == "comment":
                text = self._text(statement)
                if text.startswith("/**"):
                    description = parse_jsdoc(text)
                    if description:
                        return description
                    pending = []
                elif text.startswith("//"):
                    pending.append(text[2:].strip())
                continue
            if statement.type in {"expression_statement", "import_statement"}:
                pending = []
                continue
            break
        joined = " ".join(line for line in pending if line)
        return joined or None

    # ------------------------------------------------------------------
    # Helpers

    def _text(self, node: Node) -> str:
        return self._source[node.start_byte : node.end_byte].decode("utf-8", errors="ignore")

    def _field_text(self, node: Node, field_name: str) -> Optional[str]:
        child = node.child_by_field_name(field_name)
        return self._text(child) if child is not None else None


def parse_jsdoc(comment: str) -> str:
    """Return the prose lines of a ``/** ... */`` block, skipping ``@tags``."""
    body = comment.strip()
    if body.startswith("/**"):
        body = body[3:]
    if body.endswith("*/"):
        body = body[:-2]
    lines: List[str] = []
    for line in body.splitlines():
        cleaned = line.strip().lstrip("*").strip()
        if cleaned.startswith("@"):
            break
        if cleaned:
            lines.append(cleaned)
    return " ".join(lines).strip()


def _walk(root: Node) -> Iterator[Node]:
    stack = [root]
    while stack:
        node = stack.pop()
        yield node
        stack.extend(reversed(node.named_children))


def _unquote(text: str) -> str:
    text = text.strip()
    if len(text) >= 2 and text[0] == text[-1] and text[0] in {"'", '"', "`"}:
        return text[1:-1]
    return text


def _strip_annotation(text: str) -> str:
    return text.strip().lstrip(":").strip()


def _dedupe(items: Sequence[str]) -> List[str]:
    seen: Dict[str, None] = {}
    for item in items:
        seen.setdefault(item, None)
    return list(seen)


__all__ = [
    "ImportBinding",
    "ModuleParser",
    "ParsedModule",
    "RESERVED_WORDS",
    "STRICT",
    "TOLERANT",
    "parse_jsdoc",
]
