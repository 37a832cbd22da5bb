"""Static analysis of JavaScript/TypeScript source files."""

from __future__ import annotations

from .classifier import ROLE_RULES, RoleRule, candidate_priority, determine_role, is_candidate
from .component import ComponentAnalyzer
from .parser import ModuleParser, ParsedModule

__all__ = [
    "ComponentAnalyzer",
    "ModuleParser",
    "ParsedModule",
    "ROLE_RULES",
    "RoleRule",
    "candidate_priority",
    "determine_role",
    "is_candidate",
]
