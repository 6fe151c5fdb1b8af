"""Topic tree helpers: node creation, name matching, rendering and validation."""
from __future__ import annotations

import re
from typing import Iterable, List, Optional

from config.settings import settings
from services.errors import TreeCorruptionError

from .state import ROOT_ID, ConversationState, TopicNode

STATUS_MARKERS = {
    "unexplored": "[ ]",
    "exploring": "[~]",
    "exhausted": "[x]",
    "rich": "[*]",
}

CONTEXT_CHARS = 100

_SLUG_RE = re.compile(r"[^a-z0-9]+")


def _slug(name: str) -> str:
    slug = _SLUG_RE.sub("-", name.lower()).strip("-")
    return slug[:40] or "topic"


def names_match(candidate: str, existing: str) -> bool:
    """Case-insensitive substring match in either direction."""

    a = candidate.strip().casefold()
    b = existing.strip().casefold()
    if not a or not b:
        return False
    return a in b or b in a


def find_child(state: ConversationState, parent_id: str, name: str) -> Optional[TopicNode]:
    for child in state.children_of(parent_id):
        if names_match(name, child.name):
            return child
    return None


def on_path_match(state: ConversationState, name: str) -> Optional[TopicNode]:
    """Return a non-root node on the current path that already covers ``name``.

    A path node covers ``name`` when the casefolded name equals it or is
    contained in it. A more specific name such as "Kubernetes operators" under
    an active "Kubernetes" is not covered.
    """

    needle = name.strip().casefold()
    if not needle:
        return None
    for node_id in state.current_path[1:]:
        node = state.node(node_id)
        if needle in node.name.strip().casefold():
            return node
    return None


def can_add_child(state: ConversationState, parent_id: str) -> bool:
    """False when a new child under ``parent_id`` would exceed the tree limits."""

    if len(state.nodes) >= settings.MAX_TREE_NODES:
        return False
    return state.node(parent_id).depth + 1 <= settings.MAX_TREE_DEPTH


def add_child(state: ConversationState, parent_id: str, name: str, context: str = "") -> TopicNode:
    """Append a new ``unexplored`` child under ``parent_id``."""

    parent = state.node(parent_id)
    if not can_add_child(state, parent_id):
        raise ValueError(f"tree limit reached, cannot add {name!r} under {parent_id}")
    node = TopicNode(
        id=f"n{len(state.nodes)}-{_slug(name)}",
        name=name.strip(),
        depth=parent.depth + 1,
        parent_id=parent.id,
        status="unexplored",
        context=context[:CONTEXT_CHARS],
    )
    state.add_node(node)
    parent.children.append(node.id)
    return node


def unexplored_children(state: ConversationState, node_id: str) -> List[TopicNode]:
    return [child for child in state.children_of(node_id) if child.status == "unexplored"]


def path_names(state: ConversationState) -> List[str]:
    return [state.node(node_id).name for node_id in state.current_path]


def render_tree(state: ConversationState) -> str:
    """Indented text rendering of the tree with status markers."""

    lines: List[str] = []
    active = state.current_path[-1] if state.current_path else None

    def _walk(node_id: str, indent: str) -> None:
        node = state.node(node_id)
        marker = " <- current" if node_id == active else ""
        lines.append(f"{indent}{STATUS_MARKERS[node.status]} {node.name} (depth: {node.depth}){marker}")
        for child_id in node.children:
            _walk(child_id, indent + "  ")

    if state.has_node(ROOT_ID):
        _walk(ROOT_ID, "")
    return "\n".join(lines)


def validate_tree(state: ConversationState) -> None:
    """Check the structural invariants, raising ``TreeCorruptionError``."""

    if len(state.nodes) != len({node.id for node in state.nodes}):
        raise TreeCorruptionError("duplicate node ids in topic tree")
    if not state.has_node(ROOT_ID):
        raise TreeCorruptionError("topic tree has no root node")
    roots = [node.id for node in state.nodes if node.parent_id is None]
    if roots != [ROOT_ID]:
        raise TreeCorruptionError(f"expected a single root, found {roots}")
    if state.root.depth != 0:
        raise TreeCorruptionError("root depth must be 0")

    claimed: dict[str, str] = {}
    for node in state.nodes:
        for child_id in node.children:
            if not state.has_node(child_id):
                raise TreeCorruptionError(f"{node.id} references missing child {child_id}")
            if child_id in claimed:
                raise TreeCorruptionError(f"{child_id} is listed under {claimed[child_id]} and {node.id}")
            claimed[child_id] = node.id

    for node in state.nodes:
        if node.parent_id is None:
            continue
        if not state.has_node(node.parent_id):
            raise TreeCorruptionError(f"{node.id} has missing parent {node.parent_id}")
        if claimed.get(node.id) != node.parent_id:
            raise TreeCorruptionError(f"{node.id} is not listed among its parent's children")
        parent = state.node(node.parent_id)
        if node.depth != parent.depth + 1:
            raise TreeCorruptionError(f"{node.id} depth {node.depth} != parent depth + 1")

    validate_path(state)


def validate_path(state: ConversationState) -> None:
    path = state.current_path
    if not path or path[0] != ROOT_ID:
        raise TreeCorruptionError("current path must start at the root")
    for node_id in path:
        if not state.has_node(node_id):
            raise TreeCorruptionError(f"current path references missing node {node_id}")
    for parent_id, child_id in zip(path, path[1:]):
        if state.node(child_id).parent_id != parent_id:
            raise TreeCorruptionError(f"{child_id} is not a child of {parent_id} on the current path")
    if state.node(path[-1]).status == "exhausted":
        raise TreeCorruptionError("active topic is exhausted")


def normalize_terms(values: Iterable[str], *, lower: bool = False) -> List[str]:
    """Trim, collapse whitespace and dedupe case-insensitively, keeping order."""

    seen: set[str] = set()
    out: List[str] = []
    for raw in values:
        text = " ".join(str(raw).split())
        if not text:
            continue
        key = text.casefold()
        if key in seen:
            continue
        seen.add(key)
        out.append(text.lower() if lower else text)
    return out


__all__ = [
    "TreeCorruptionError",
    "names_match",
    "find_child",
    "on_path_match",
    "can_add_child",
    "add_child",
    "unexplored_children",
    "path_names",
    "render_tree",
    "validate_tree",
    "validate_path",
    "normalize_terms",
]
