"""Persistent stores used by compgraph."""

from .repo_cache import CACHE_VERSION, CacheStats, RepoCache, make_cache_key, plan_evictions

__all__ = ["CACHE_VERSION", "CacheStats", "RepoCache", "make_cache_key", "plan_evictions"]
