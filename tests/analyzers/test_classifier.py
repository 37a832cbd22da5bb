"""Tests for candidate selection and role classification."""

from __future__ import annotations

import pytest

from compgraph.analyzers.classifier import (
    ROLE_RULES,
    candidate_priority,
    determine_role,
    is_candidate,
    match_rule,
)
from compgraph.models import EntityRole


def test_plain_constant_export_outside_structural_dirs_is_not_a_candidate() -> None:
    assert not is_candidate("x.ts", "export const x = 1\n")


def test_hook_filename_is_a_candidate_and_a_hook() -> None:
    content = "export const x = 1\n"
    assert is_candidate("useX.ts", content)
    assert determine_role("useX.ts", content) is EntityRole.HOOK


@pytest.mark.parametrize(
    "path, content",
    [
        ("src/components/Button.tsx", ""),
        ("app/dashboard/page.tsx", ""),
        ("widgets/Card.jsx", "export function Card() { return <div /> }"),
        ("widgets/card.js", "const Card = () => (\n  <section />\n)"),
        ("widgets/useAuth.js", "export function useAuth() {}"),
        ("widgets/api.js", "function call() {}\nexport { call }"),
        ("widgets/main.mjs", "export default 42"),
    ],
)
def test_candidates(path: str, content: str) -> None:
    assert is_candidate(path, content)


@pytest.mark.parametrize(
    "path, content",
    [
        ("src/components/Button.test.tsx", "export default function Button() {}"),
        ("src/components/__tests__/Button.tsx", "export default function Button() {}"),
        ("src/styles/theme.css", "export default {}"),
        ("src/types.d.ts", "export interface Theme {}"),
        ("scripts/seed.js", "console.log('seed')"),
    ],
)
def test_non_candidates(path: str, content: str) -> None:
    assert not is_candidate(path, content)


def test_declaration_file_exporting_a_component_is_kept() -> None:
    assert is_candidate("types/ui.d.ts", "export declare function ButtonComponent(): void;")


@pytest.mark.parametrize(
    "path, content, role",
    [
        ("app/api/users/route.ts", "export async function GET() {}", EntityRole.UTILITY),
        ("pages/api/hello.ts", "export default function handler() {}", EntityRole.UTILITY),
        ("app/page.tsx", "export default function Home() { return <main /> }", EntityRole.PAGE),
        ("src/pages/about.tsx", "export default function About() {}", EntityRole.PAGE),
        ("app/layout.tsx", "export default function RootLayout() {}", EntityRole.LAYOUT),
        ("pages/_app.tsx", "export default function App() {}", EntityRole.LAYOUT),
        ("components/MainLayout.tsx", "export function MainLayout() {}", EntityRole.LAYOUT),
        ("app/blog/loading.tsx", "export default function Loading() {}", EntityRole.PAGE),
        ("app/not-found.tsx", "export default function NotFound() {}", EntityRole.PAGE),
        ("src/hooks/useCart.ts", "export function useCart() {}", EntityRole.HOOK),
        ("src/context/ThemeContext.tsx", "export const ThemeContext = 1", EntityRole.CONTEXT),
        ("src/state.tsx", "const Ctx = createContext(null)\nexport default Ctx", EntityRole.CONTEXT),
        ("src/lib/format.ts", "export function format() {}", EntityRole.UTILITY),
        ("next.config.js", "module.exports = {}", EntityRole.UTILITY),
        ("src/components/Card.tsx", "export function Card() { return <div /> }", EntityRole.COMPONENT),
    ],
)
def test_roles(path: str, content: str, role: EntityRole) -> None:
    assert determine_role(path, content) is role


def test_rule_order_is_first_match_wins() -> None:
    names = [rule.name for rule in ROLE_RULES]
    assert names == ["route-handler", "page", "layout", "page-state", "hook", "context", "utility"]
    # A hook living in a context directory is still a hook.
    assert match_rule("src/context/useTheme.ts", "") is EntityRole.HOOK


def test_candidate_priority_puts_pages_first() -> None:
    paths = [
        "src/lib/format.ts",
        "src/components/Card.tsx",
        "app/layout.tsx",
        "app/page.tsx",
        "README.md",
        "src/hooks/useCart.ts",
    ]
    ordered = sorted(paths, key=candidate_priority)
    assert ordered == [
        "app/page.tsx",
        "app/layout.tsx",
        "src/components/Card.tsx",
        "src/hooks/useCart.ts",
        "src/lib/format.ts",
        "README.md",
    ]
