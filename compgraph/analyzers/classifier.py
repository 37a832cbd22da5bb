"""Decides which files are structural units and which role each one plays."""

from __future__ import annotations

import re
from dataclasses import dataclass
from pathlib import PurePosixPath
from typing import Callable, Optional, Sequence

from ..models import EntityRole

JS_EXTENSIONS = (".js", ".jsx", ".ts", ".tsx", ".mjs", ".cjs")

STRUCTURAL_DIRS = frozenset(
    {
        "components",
        "app",
        "pages",
        "hooks",
        "context",
        "contexts",
        "lib",
        "utils",
        "helpers",
        "services",
        "layouts",
        "config",
        "constants",
        "providers",
        "store",
    }
)

SPECIAL_STEMS = frozenset(
    {
        "page",
        "layout",
        "loading",
        "error",
        "not-found",
        "global-error",
        "template",
        "route",
        "_app",
        "_document",
    }
)

_EXT = r"\.[cm]?[jt]sx?$"

_TEST_FILE = re.compile(r"\.(?:test|spec)\.[cm]?[jt]sx?$")
_HOOK_STEM = re.compile(r"^use[A-Z]")
_MARKUP_RETURN = re.compile(r"(?:return|=>)\s*\(?\s*<[A-Za-z>]")
_CAPITALIZED_EXPORT = re.compile(
    r"export\s+(?:default\s+)?(?:async\s+)?(?:function\s*\*?\s*|(?:abstract\s+)?class\s+|const\s+|let\s+)[A-Z]"
)
_HOOK_EXPORT = re.compile(r"export\s+(?:default\s+)?(?:async\s+)?(?:function\s+|const\s+|let\s+)use[A-Z]")
_CLEAR_EXPORT = re.compile(r"export\s+default\b|export\s*\{[^}]*\}")
_DECLARATION_EXPORT = re.compile(
    r"export\s+(?:declare\s+)?(?:default\s+)?(?:function|class|const)\s+\w*(?:Component|Provider)\b"
)
_CREATE_CONTEXT = re.compile(r"\bcreateContext\s*[<(]")

_APP_ROUTE = re.compile(r"/app/(?:.*/)?route\.[cm]?[jt]s$")
_API_ROUTE = re.compile(r"/pages/api/")
_APP_PAGE = re.compile(r"/app/(?:.*/)?page" + _EXT)
_PAGES_ROUTER = re.compile(r"/pages/(?:.*/)?[^/_][^/]*" + _EXT)
_APP_LAYOUT = re.compile(r"/app/(?:.*/)?layout" + _EXT)
_PAGE_STATE = re.compile(r"/app/(?:.*/)?(?:loading|error|not-found|global-error|template)" + _EXT)
_CONFIG_FILE = re.compile(r"(?:^|/)[\w-]+\.config" + _EXT)
_UTILITY_STEM = re.compile(r"\.(?:config|constants|utils|helpers|types)$")


@dataclass(frozen=True)
class RoleRule:
    """One row of the ordered role table; the first matching rule wins."""

    name: str
    predicate: Callable[[str, str], bool]
    role: EntityRole


def _segments(path: str) -> Sequence[str]:
    return PurePosixPath(path).parts[:-1]


def stem_of(path: str) -> str:
    name = PurePosixPath(path).name
    for ext in JS_EXTENSIONS:
        if name.endswith(ext):
            return name[: -len(ext)]
    return name


def _anchored(path: str) -> str:
    return "/" + path.lstrip("/")


def _in_dirs(path: str, names: Sequence[str]) -> bool:
    return any(segment in names for segment in _segments(path))


def is_source_file(path: str) -> bool:
    return path.lower().endswith(JS_EXTENSIONS)


def is_test_file(path: str) -> bool:
    return bool(_TEST_FILE.search(path)) or "__tests__" in _segments(path)


def looks_like_component(content: str) -> bool:
    return bool(_MARKUP_RETURN.search(content) or _CAPITALIZED_EXPORT.search(content))


def is_candidate(path: str, content: str) -> bool:
    """Return True when ``path`` should be analyzed as a structural unit."""
    if not is_source_file(path) or is_test_file(path):
        return False
    if path.endswith(".d.ts"):
        return bool(_DECLARATION_EXPORT.search(content))

    stem = stem_of(path)
    return (
        _in_dirs(path, STRUCTURAL_DIRS)
        or stem in SPECIAL_STEMS
        or bool(_HOOK_STEM.match(stem))
        or looks_like_component(content)
        or bool(_HOOK_EXPORT.search(content))
        or bool(_CLEAR_EXPORT.search(content))
    )


def _route_handler(path: str, content: str) -> bool:
    anchored = _anchored(path)
    return bool(_APP_ROUTE.search(anchored) or _API_ROUTE.search(anchored))


def _page(path: str, content: str) -> bool:
    anchored = _anchored(path)
    return bool(_APP_PAGE.search(anchored) or _PAGES_ROUTER.search(anchored))


def _layout(path: str, content: str) -> bool:
    stem = stem_of(path)
    return (
        bool(_APP_LAYOUT.search(_anchored(path)))
        or _in_dirs(path, ("layouts",))
        or stem in {"layout", "_app", "_document"}
        or (stem.endswith("Layout") and stem[:1].isupper())
    )


def _page_state(path: str, content: str) -> bool:
    return bool(_PAGE_STATE.search(_anchored(path)))


def _hook(path: str, content: str) -> bool:
    return (
        _in_dirs(path, ("hooks",))
        or bool(_HOOK_STEM.match(stem_of(path)))
        or bool(_HOOK_EXPORT.search(content))
    )


def _context(path: str, content: str) -> bool:
    stem = stem_of(path)
    return (
        _in_dirs(path, ("context", "contexts", "providers"))
        or "Context" in stem
        or "Provider" in stem
        or bool(_CREATE_CONTEXT.search(content))
    )


def _utility(path: str, content: str) -> bool:
    if _in_dirs(path, ("lib", "utils", "helpers", "services", "config", "constants", "store")):
        return True
    if _CONFIG_FILE.search(path) or _UTILITY_STEM.search(stem_of(path)):
        return True
    return not looks_like_component(content)


ROLE_RULES: Sequence[RoleRule] = (
    RoleRule("route-handler", _route_handler, EntityRole.UTILITY),
    RoleRule("page", _page, EntityRole.PAGE),
    RoleRule("layout", _layout, EntityRole.LAYOUT),
    RoleRule("page-state", _page_state, EntityRole.PAGE),
    RoleRule("hook", _hook, EntityRole.HOOK),
    RoleRule("context", _context, EntityRole.CONTEXT),
    RoleRule("utility", _utility, EntityRole.UTILITY),
)


def determine_role(
    path: str, content: str, rules: Sequence[RoleRule] = ROLE_RULES
) -> EntityRole:
    return match_rule(path, content, rules) or EntityRole.COMPONENT


def match_rule(
    path: str, content: str, rules: Sequence[RoleRule] = ROLE_RULES
) -> Optional[EntityRole]:
    for rule in rules:
        if rule.predicate(path, content):
            return rule.role
    return None


_PRIORITY_PATTERNS: Sequence[re.Pattern[str]] = (
    _APP_PAGE,
    _PAGES_ROUTER,
    _APP_LAYOUT,
    re.compile(r"/(?:_app|_document)" + _EXT),
    _PAGE_STATE,
    re.compile(r"/components/"),
    re.compile(r"/hooks/"),
    re.compile(r"/contexts?/"),
    re.compile(r"/(?:lib|utils)/"),
    _CONFIG_FILE,
)


def candidate_priority(path: str) -> int:
    """Rank used to analyze pages and layouts before components and helpers."""
    anchored = _anchored(path)
    for rank, pattern in enumerate(_PRIORITY_PATTERNS):
        if pattern.search(anchored):
            return rank
    return len(_PRIORITY_PATTERNS)


__all__ = [
    "JS_EXTENSIONS",
    "ROLE_RULES",
    "RoleRule",
    "STRUCTURAL_DIRS",
    "SPECIAL_STEMS",
    "candidate_priority",
    "determine_role",
    "is_candidate",
    "is_source_file",
    "is_test_file",
    "looks_like_component",
    "match_rule",
    "stem_of",
]
