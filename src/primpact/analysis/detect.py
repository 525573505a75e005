"""Guess an impact map from a repository file tree.

Used to bootstrap ``impact-map.config.json`` for repositories that do not
have one yet. The heuristics target Next.js style layouts (``app/`` routes,
``app/api/`` handlers, ``components/``/``lib/``/``src/`` feature folders).
"""

from __future__ import annotations

import re

from primpact.config import FeatureMapping, ImpactMapConfig

_PAGE = re.compile(r"^app/(.+)/page\.(?:tsx|ts|jsx|js)$")
_API = re.compile(r"^app/api/([^/]+)")
_FEATURE_DIR = re.compile(r"^(components|lib|src)/([^/]+)/")
_COMPONENT_FILE = re.compile(r"^components/([^/]+)\.(?:tsx|ts|jsx|js)$")

DETECTED_IGNORE_PATTERNS = [
    "**/*.test.*",
    "**/*.spec.*",
    "**/*.md",
    "**/node_modules/**",
]


def detect_config_from_tree(file_paths: list[str]) -> ImpactMapConfig:
    """Build an ImpactMapConfig from a list of repository paths."""
    features: dict[str, FeatureMapping] = {}
    services: dict[str, list[str]] = {}
    pages: dict[str, list[str]] = {}

    for path in file_paths:
        match = _PAGE.match(path)
        if match:
            route = re.sub(r"\[\.\.\..*?\]", "*", match.group(1))
            route = re.sub(r"\[.*?\]", ":param", route)
            name = route.split("/")[-1] or route
            pages[name] = [f"app/{match.group(1)}/**"]

    for path in file_paths:
        match = _API.match(path)
        if match and match.group(1) not in services:
            service = match.group(1)
            services[service] = [f"app/api/{service}/**"]

    for path in file_paths:
        match = _FEATURE_DIR.match(path)
        if match:
            name = match.group(2)
            if name not in features:
                features[name] = FeatureMapping(
                    description=f"{name} module",
                    paths=[f"{match.group(1)}/{name}/**"],
                )

    for path in file_paths:
        match = _COMPONENT_FILE.match(path)
        if match and match.group(1) not in features:
            name = match.group(1)
            features[name] = FeatureMapping(description=f"{name} component", paths=[path])

    return ImpactMapConfig(
        features=features,
        services=services,
        pages=pages,
        ignore_patterns=list(DETECTED_IGNORE_PATTERNS),
    )
