"""Tests for the tree-sitter module parser."""

from __future__ import annotations

import pytest

from compgraph.analyzers.parser import STRICT, TOLERANT, ModuleParser, parse_jsdoc
from compgraph.errors import AnalysisError


def test_strategy_selection() -> None:
    parser = ModuleParser()
    assert parser.strategies_for("src/App.tsx", "") == (TOLERANT,)
    assert parser.strategies_for("src/App.js", "const a = <div></div>;") == (TOLERANT, STRICT)
    assert parser.strategies_for("src/util.ts", "const xs: Array<string> = [];") == (STRICT, TOLERANT)
    assert parser.strategies_for("src/tpl.ts", 'const T = "<br/>";') == (STRICT, TOLERANT)


def test_markup_looking_string_in_ts_file_keeps_strict_grammar() -> None:
    content = 'export const TEMPLATE = "<br/>";\nexport function useCount(value: unknown) { return <number>value; }\n'
    module = ModuleParser().parse("hooks/useCount.ts", content)

    assert module.strategy == STRICT
    assert module.functions == ["useCount"]


def test_markup_in_js_file_parses_with_tolerant_grammar() -> None:
    module = ModuleParser().parse("src/App.js", "export default function App() { return <div /> }\n")

    assert module.strategy == TOLERANT
    assert module.has_markup
    assert module.default_export == "App"


def test_imports_and_namespace_bindings() -> None:
    module = ModuleParser().parse(
        "src/index.ts",
        "import Default, { One, Two as Alias } from './things';\nimport './styles.css';\n",
    )

    assert [(binding.source, binding.names) for binding in module.imports] == [
        ("./things", ["Default", "One", "Two"]),
        ("./styles.css", []),
    ]


def test_member_calls_are_tracked_separately() -> None:
    module = ModuleParser().parse(
        "src/ctx.ts", "const Ctx = React.createContext(null);\nlog(Ctx);\n"
    )

    assert module.member_calls == ["createContext"]
    assert module.calls == ["log"]


def test_unparseable_source_raises() -> None:
    with pytest.raises(AnalysisError):
        ModuleParser().parse("src/bad.ts", "function (((")


def test_parse_jsdoc_skips_tags() -> None:
    comment = "/**\n * Renders a card.\n * Second line.\n * @param props the props\n */"
    assert parse_jsdoc(comment) == "Renders a card. Second line."
