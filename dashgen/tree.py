"""Tabgroup tree construction and text rendering."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Iterable, Iterator, List, Mapping, Optional, Tuple

from .models import KIND_VIZ, ResolvedIntent
from .spec.paths import join_path

_BRANCH = "├─ "
_LAST_BRANCH = "└─ "
_PIPE = "│  "
_SPACE = "   "


@dataclass
class TreeNode:
    """A tabgroup level: ordered children keyed by raw label plus direct leaves."""

    label: str = ""
    children: Dict[str, "TreeNode"] = field(default_factory=dict)
    leaves: List[ResolvedIntent] = field(default_factory=list)

    def child(self, label: str) -> "TreeNode":
        """Return the child named ``label``, creating it on first sight."""
        node = self.children.get(label)
        if node is None:
            node = TreeNode(label=label)
            self.children[label] = node
        return node

    def find(self, path: Iterable[str]) -> Optional["TreeNode"]:
        node: Optional[TreeNode] = self
        for segment in path:
            if node is None:
                return None
            node = node.children.get(segment)
        return node

    def walk(self, prefix: Tuple[str, ...] = ()) -> Iterator[Tuple[Tuple[str, ...], "TreeNode"]]:
        """Yield ``(path, node)`` pairs depth-first in insertion order."""
        yield prefix, self
        for label, node in self.children.items():
            yield from node.walk(prefix + (label,))

    def iter_leaves(self) -> Iterator[ResolvedIntent]:
        for _, node in self.walk():
            yield from node.leaves

    @property
    def leaf_count(self) -> int:
        return sum(1 for _ in self.iter_leaves())


def build_tree(intents: Iterable[ResolvedIntent]) -> TreeNode:
    """Arrange resolved intents into a tree by their paths in one pass."""
    root = TreeNode()
    for intent in intents:
        node = root
        for segment in intent.path:
            node = node.child(segment)
        node.leaves.append(intent)
    return root


def display_label(path: Tuple[str, ...], labels: Optional[Mapping[str, str]]) -> str:
    """Return the human label for the node at ``path``.

    A label keyed by the full slash-joined path wins over one keyed by the
    bare segment.
    """
    segment = path[-1] if path else ""
    if not labels:
        return segment
    full = join_path(path)
    if full in labels:
        return labels[full]
    return labels.get(segment, segment)


def describe_intent(intent: ResolvedIntent) -> str:
    """One-line summary of an intent used by tree listings and previews."""
    if intent.kind == KIND_VIZ:
        heading = str(intent.type or "viz").upper()
    else:
        subtype = intent.get("type")
        heading = f"{intent.kind}:{subtype}".upper() if subtype else intent.kind.upper()
    text = heading
    title = intent.title
    if title:
        text += f": {title}"
    elif intent.kind != KIND_VIZ and intent.get("text"):
        snippet = " ".join(str(intent.get("text")).split())
        if len(snippet) > 40:
            snippet = snippet[:39] + "…"
        text += f": {snippet}"
    if intent.filter is not None:
        text += " [filtered]"
    return text


def render_tree_text(root: TreeNode, labels: Optional[Mapping[str, str]] = None) -> str:
    """Render ``root`` as an indented box-drawing listing."""
    lines: List[str] = []
    _render_level(root, (), "", labels, lines)
    return "\n".join(lines)


def _render_level(
    node: TreeNode,
    path: Tuple[str, ...],
    prefix: str,
    labels: Optional[Mapping[str, str]],
    lines: List[str],
) -> None:
    entries: List[object] = list(node.leaves) + list(node.children.values())
    for position, entry in enumerate(entries):
        is_last = position == len(entries) - 1
        branch = _LAST_BRANCH if is_last else _BRANCH
        if isinstance(entry, TreeNode):
            child_path = path + (entry.label,)
            lines.append(f"{prefix}{branch}{display_label(child_path, labels)}")
            _render_level(
                entry, child_path, prefix + (_SPACE if is_last else _PIPE), labels, lines
            )
        else:
            lines.append(f"{prefix}{branch}{describe_intent(entry)}")  # type: ignore[arg-type]


__all__ = [
    "TreeNode",
    "build_tree",
    "describe_intent",
    "display_label",
    "render_tree_text",
]
