"""
Module dependency graph (pure).

The install order is resolved once at startup from each module's
``depends_on``.  No I/O, no subprocess.
"""

from __future__ import annotations

from vpsforge.core.errors import ConfigError
from vpsforge.core.models.module import Module


def validate_graph(modules: list[Module]) -> list[str]:
    """Validate the module dependency graph.

    Checks for:
    - Duplicate module IDs
    - References to unknown module IDs
    - Cycles (Kahn's algorithm)

    Returns:
        List of error strings (empty = valid).
    """
    errors: list[str] = []
    ids = {m.id for m in modules}

    seen: set[str] = set()
    for m in modules:
        if m.id in seen:
            errors.append(f"Duplicate module ID: {m.id}")
        seen.add(m.id)

    for m in modules:
        for dep in m.depends_on:
            if dep not in ids:
                errors.append(f"Module '{m.id}' depends on unknown module '{dep}'")

    if errors:
        return errors

    in_degree: dict[str, int] = {m.id: len(m.depends_on) for m in modules}
    adj: dict[str, list[str]] = {m.id: [] for m in modules}
    for m in modules:
        for dep in m.depends_on:
            adj[dep].append(m.id)

    queue = [mid for mid, deg in in_degree.items() if deg == 0]
    processed = 0
    while queue:
        node = queue.pop(0)
        processed += 1
        for successor in adj[node]:
            in_degree[successor] -= 1
            if in_degree[successor] == 0:
                queue.append(successor)

    if processed < len(modules):
        stuck = sorted(mid for mid, deg in in_degree.items() if deg > 0)
        errors.append(f"Dependency cycle detected among: {', '.join(stuck)}")

    return errors


def resolve_install_order(modules: list[Module]) -> list[Module]:
    """Topologically sort modules, stable on registry order.

    At each step the earliest-declared module whose dependencies are
    already placed goes next, so a registry that is already in a valid
    order comes back unchanged.

    Raises:
        ConfigError: the graph is invalid.
    """
    errors = validate_graph(modules)
    if errors:
        raise ConfigError("Invalid module graph:\n  " + "\n  ".join(errors))

    ordered: list[Module] = []
    placed: set[str] = set()
    remaining = list(modules)
    while remaining:
        for i, m in enumerate(remaining):
            if all(dep in placed for dep in m.depends_on):
                ordered.append(m)
                placed.add(m.id)
                del remaining[i]
                break
    return ordered


def select_modules(
    modules: list[Module],
    mode: str,
    only: list[str] | tuple[str, ...] | None = None,
) -> list[Module]:
    """Filter an ordered module list by mode and ``--only`` ids.

    ``only`` does not pull in dependencies: a targeted re-run installs
    exactly what was asked for.

    Raises:
        ConfigError: an ``only`` id is unknown.
    """
    if only:
        known = {m.id for m in modules}
        unknown = [mid for mid in only if mid not in known]
        if unknown:
            raise ConfigError(f"Unknown module(s): {', '.join(unknown)}")
        wanted = set(only)
        modules = [m for m in modules if m.id in wanted]

    return [m for m in modules if m.enabled_in(mode)]

