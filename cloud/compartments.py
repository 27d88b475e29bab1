# cloud/compartments.py
from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, List, Optional

from state import RemoteOption


@dataclass
class CompartmentNode:
    id: str
    name: str
    is_expanded: bool = False
    is_selected: bool = False
    is_visible: bool = True
    children: List["CompartmentNode"] = field(default_factory=list)


def _children(compartment: dict) -> List[dict]:
    return [c for c in compartment.get("compartments") or [] if isinstance(c, dict)]


def flatten_compartments(root: Any) -> List[RemoteOption]:
    """Depth-first list of every compartment in the tree (root first)."""
    flat: List[RemoteOption] = []

    def _add(c: Any) -> None:
        if not isinstance(c, dict):
            return
        flat.append(RemoteOption(label=c.get("name", ""), value=c.get("id", "")))
        for child in _children(c):
            _add(child)

    _add(root)
    return flat


def build_compartment_tree(
    root: Any, selected_id: str = "", query: str = ""
) -> List[CompartmentNode]:
    """Nested nodes for the compartment browser.

    The node whose id is ``selected_id`` is marked selected and its ancestors
    expanded. With a ``query``, only nodes whose name contains it (case
    insensitive) and their ancestors stay visible, and those ancestors expand.
    """
    tree: List[CompartmentNode] = []
    needle = query.strip().lower()

    def _add(c: dict, siblings: List[CompartmentNode]) -> CompartmentNode:
        node = CompartmentNode(id=c.get("id", ""), name=c.get("name", ""))
        node.is_selected = bool(selected_id) and node.id == selected_id
        for child in _children(c):
            _add(child, node.children)
        below_selected = any(_has_selected(ch) for ch in node.children)
        below_match = bool(needle) and any(ch.is_visible for ch in node.children)
        node.is_expanded = below_selected or below_match
        node.is_visible = not needle or needle in str(node.name).lower() or below_match
        siblings.append(node)
        return node

    if isinstance(root, dict):
        _add(root, tree)
    return tree


def _has_selected(node: CompartmentNode) -> bool:
    return node.is_selected or any(_has_selected(ch) for ch in node.children)


def compartment_name(root: Any, compartment_id: str) -> Optional[str]:
    for option in flatten_compartments(root):
        if option.value == compartment_id:
            return option.label
    return None
