"""Path classification for the front-end edge middleware."""
from __future__ import annotations

import re
from collections.abc import Iterable
from dataclasses import dataclass, field
from enum import Enum
from functools import lru_cache


SKIP_PREFIXES: tuple[str, ...] = ("/_next", "/api", "/static")


class RouteClass(str, Enum):
    SKIP = "skip"
    PUBLIC = "public"
    AUTH_ONLY = "auth_only"
    PROTECTED = "protected"


@lru_cache(maxsize=256)
def _compile_pattern(pattern: str) -> re.Pattern[str]:
    # "/vendors/[slug]" -> ^/vendors/[^/]+(/.*)?$
    parts = re.split(r"\[[^\]]*\]", pattern)
    body = "[^/]+".join(re.escape(part) for part in parts)
    return re.compile(f"^{body}(/.*)?$")


def matches_path(path: str, patterns: Iterable[str]) -> bool:
    for pattern in patterns:
        if path == pattern or path.startswith(pattern.rstrip("/") + "/"):
            # "/" only matches itself; every path starts with "/"
            if pattern == "/" and path != "/":
                continue
            return True
        if "[" in pattern and "]" in pattern and _compile_pattern(pattern).match(path):
            return True
    return False


def is_skipped(path: str) -> bool:
    if path == "/favicon.ico" or "." in path:
        return True
    return any(path == prefix or path.startswith(prefix + "/") for prefix in SKIP_PREFIXES)


@dataclass(frozen=True)
class RouteTable:
    login_path: str
    after_login_path: str
    redirect_param: str
    public_routes: tuple[str, ...] = ()
    auth_routes: tuple[str, ...] = ()
    protected_routes: tuple[str, ...] = ()
    session_exempt_auth_routes: tuple[str, ...] = field(default_factory=tuple)
    protect_unlisted: bool = False

    def classify(self, path: str) -> RouteClass:
        if is_skipped(path):
            return RouteClass.SKIP
        if matches_path(path, self.auth_routes):
            return RouteClass.AUTH_ONLY
        if matches_path(path, self.protected_routes):
            return RouteClass.PROTECTED
        if matches_path(path, self.public_routes):
            return RouteClass.PUBLIC
        return RouteClass.PROTECTED if self.protect_unlisted else RouteClass.PUBLIC

    def is_listed_protected(self, path: str) -> bool:
        return matches_path(path, self.protected_routes)

    def is_session_exempt(self, path: str) -> bool:
        return matches_path(path, self.session_exempt_auth_routes)
