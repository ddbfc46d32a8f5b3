"""
Capability interfaces over the host's move list, and an ElementTree adapter.

The host renderer owns the tree. The indexer and materializer only see it through
TreeReader (queries) and TreeWriter (insert/remove of nodes carrying our synthetic
marker). Node handles are opaque to them.

MoveListTree models the host markup:

    <div class="tview2">
      <index>1</index><move><san>e4</san></move><move>e5</move>
      <interrupt><comment>host note</comment><lines><line><move>d5</move></line></lines></interrupt>
      ...
    </div>

``interrupt`` is the comment holder, ``move class="empty"`` the no-move placeholder,
``index`` the move-number marker, ``lines``/``line`` hold side variations.
"""
from __future__ import annotations

import logging
import xml.etree.ElementTree as ET
from dataclasses import dataclass
from typing import Any, Dict, Iterator, List, Optional, Protocol, Sequence

log = logging.getLogger("tree")

MARKER_ATTR = "data-ai-id"
AI_COMMENT_CLASS = "ai-comment"

MOVE_TAG = "move"
INDEX_TAG = "index"
HOLDER_TAG = "interrupt"
COMMENT_TAG = "comment"
VARIATION_TAGS = frozenset({"lines", "line", "branch"})
EMPTY_CLASS = "empty"
ROOT_CLASSES = ("tview2", "analyse__moves", "moves")

NodeRef = Any


@dataclass(frozen=True)
class MoveEntry:
    """One move node in document order as seen by the indexer."""

    node: NodeRef
    text: str
    number_text: Optional[str]
    in_variation: bool
    is_placeholder: bool
    is_synthetic: bool


class TreeReader(Protocol):
    def root(self) -> Optional[NodeRef]: ...

    def move_entries(self) -> Iterator[MoveEntry]: ...

    def next_sibling(self, node: NodeRef) -> Optional[NodeRef]: ...

    def parent(self, node: NodeRef) -> Optional[NodeRef]: ...

    def children(self, node: NodeRef) -> List[NodeRef]: ...

    def own_text(self, node: NodeRef) -> str: ...

    def marker_of(self, node: NodeRef) -> Optional[str]: ...

    def is_holder(self, node: NodeRef) -> bool: ...

    def is_comment(self, node: NodeRef) -> bool: ...

    def is_placeholder(self, node: NodeRef) -> bool: ...

    def is_number_marker(self, node: NodeRef) -> bool: ...

    def marked_nodes(self) -> List[NodeRef]: ...

    def find_marker(self, marker: str) -> Optional[NodeRef]: ...


class TreeWriter(Protocol):
    def create_holder(self, marker: str) -> NodeRef: ...

    def create_annotation(self, marker: str, lines: Sequence[str]) -> NodeRef: ...

    def create_placeholder(self, marker: str) -> NodeRef: ...

    def create_number_marker(self, marker: str, text: str) -> NodeRef: ...

    def insert_after(self, anchor: NodeRef, node: NodeRef) -> None: ...

    def append_child(self, parent: NodeRef, node: NodeRef) -> None: ...

    def remove(self, node: NodeRef) -> None: ...

    def remove_empty_wrapper(self, node: NodeRef) -> None: ...


class HostTree(TreeReader, TreeWriter, Protocol):
    """Both capabilities, as required by the materializer."""


class ForeignNodeError(RuntimeError):
    """A write was attempted on a node that does not carry our marker."""


def _classes(el: ET.Element) -> List[str]:
    return (el.get("class") or "").split()


class MoveListTree:
    """TreeReader + TreeWriter over an ElementTree document holding the host move list."""

    def __init__(self, document: ET.Element, root_classes: Sequence[str] = ROOT_CLASSES):
        self.document = document
        self.root_classes = tuple(root_classes)
        self._parents: Optional[Dict[ET.Element, ET.Element]] = None

    @classmethod
    def from_markup(cls, markup: str, **kwargs) -> "MoveListTree":
        return cls(ET.fromstring(markup), **kwargs)

    def to_markup(self) -> str:
        return ET.tostring(self.document, encoding="unicode")

    # ---------------- Reading -----------------
    def root(self) -> Optional[ET.Element]:
        for cls_name in self.root_classes:
            for el in self.document.iter():
                if cls_name in _classes(el):
                    return el
        return None

    def _parent_map(self) -> Dict[ET.Element, ET.Element]:
        if self._parents is None:
            self._parents = {child: parent for parent in self.document.iter() for child in parent}
        return self._parents

    def _invalidate(self) -> None:
        self._parents = None

    def parent(self, node: ET.Element) -> Optional[ET.Element]:
        return self._parent_map().get(node)

    def children(self, node: ET.Element) -> List[ET.Element]:
        return list(node)

    def next_sibling(self, node: ET.Element) -> Optional[ET.Element]:
        parent = self.parent(node)
        if parent is None:
            return None
        siblings = list(parent)
        pos = siblings.index(node)
        return siblings[pos + 1] if pos + 1 < len(siblings) else None

    def own_text(self, node: ET.Element) -> str:
        return (node.text or "").strip()

    def text_content(self, node: ET.Element) -> str:
        return "".join(node.itertext()).strip()

    def marker_of(self, node: ET.Element) -> Optional[str]:
        return node.get(MARKER_ATTR)

    def is_holder(self, node: ET.Element) -> bool:
        return node.tag == HOLDER_TAG

    def is_comment(self, node: ET.Element) -> bool:
        return node.tag == COMMENT_TAG or COMMENT_TAG in _classes(node)

    def is_placeholder(self, node: ET.Element) -> bool:
        if node.tag != MOVE_TAG:
            return False
        if EMPTY_CLASS in _classes(node):
            return True
        return self._move_text(node) in {"", "..."}

    def is_number_marker(self, node: ET.Element) -> bool:
        return node.tag == INDEX_TAG

    def _move_text(self, node: ET.Element) -> str:
        san = node.find("san")
        if san is not None:
            return "".join(san.itertext()).strip()
        return (node.text or "").strip()

    def _in_variation(self, node: ET.Element, root: ET.Element) -> bool:
        current = self.parent(node)
        while current is not None and current is not root:
            if current.tag in VARIATION_TAGS:
                return True
            current = self.parent(current)
        return False

    def move_entries(self) -> Iterator[MoveEntry]:
        root = self.root()
        if root is None:
            return
        number_text: Optional[str] = None
        for el in list(root.iter()):
            if el is root:
                continue
            if el.tag == INDEX_TAG:
                if self.marker_of(el) is None and not self._in_variation(el, root):
                    number_text = "".join(el.itertext()).strip()
                continue
            if el.tag != MOVE_TAG:
                continue
            in_variation = self._in_variation(el, root)
            yield MoveEntry(
                node=el,
                text=self._move_text(el),
                number_text=None if in_variation else number_text,
                in_variation=in_variation,
                is_placeholder=self.is_placeholder(el),
                is_synthetic=self.marker_of(el) is not None,
            )
            if not in_variation:
                number_text = None

    def marked_nodes(self) -> List[ET.Element]:
        """Marked nodes not nested inside another marked node, in document order."""
        out: List[ET.Element] = []

        def walk(el: ET.Element) -> None:
            for child in el:
                if self.marker_of(child) is not None:
                    out.append(child)
                else:
                    walk(child)

        walk(self.document)
        return out

    def find_marker(self, marker: str) -> Optional[ET.Element]:
        for el in self.document.iter():
            if el.get(MARKER_ATTR) == marker:
                return el
        return None

    # ---------------- Writing -----------------
    def create_holder(self, marker: str) -> ET.Element:
        return ET.Element(HOLDER_TAG, {MARKER_ATTR: marker})

    def create_annotation(self, marker: str, lines: Sequence[str]) -> ET.Element:
        el = ET.Element(COMMENT_TAG, {"class": AI_COMMENT_CLASS, MARKER_ATTR: marker})
        first, *rest = list(lines) or [""]
        el.text = first
        for line in rest:
            div = ET.SubElement(el, "div", {"class": "ai-recommendation"})
            div.text = line
        return el

    def create_placeholder(self, marker: str) -> ET.Element:
        el = ET.Element(MOVE_TAG, {"class": EMPTY_CLASS, MARKER_ATTR: marker})
        el.text = "..."
        return el

    def create_number_marker(self, marker: str, text: str) -> ET.Element:
        el = ET.Element(INDEX_TAG, {MARKER_ATTR: marker})
        el.text = text
        return el

    def _require_marked(self, node: ET.Element) -> None:
        if self.marker_of(node) is None:
            raise ForeignNodeError(f"refusing to modify unmarked <{node.tag}> node")

    def insert_after(self, anchor: ET.Element, node: ET.Element) -> None:
        self._require_marked(node)
        parent = self.parent(anchor)
        if parent is None:
            raise ValueError("anchor has no parent")
        pos = list(parent).index(anchor)
        # ElementTree keeps inter-node text in .tail; keep the anchor's tail after the new node
        node.tail, anchor.tail = anchor.tail, None
        parent.insert(pos + 1, node)
        self._invalidate()

    def append_child(self, parent: ET.Element, node: ET.Element) -> None:
        self._require_marked(node)
        parent.append(node)
        self._invalidate()

    def _detach(self, node: ET.Element) -> None:
        parent = self.parent(node)
        if parent is None:
            return
        siblings = list(parent)
        pos = siblings.index(node)
        if node.tail:
            if pos > 0:
                prev = siblings[pos - 1]
                prev.tail = (prev.tail or "") + node.tail
            else:
                parent.text = (parent.text or "") + node.tail
        parent.remove(node)
        self._invalidate()

    def remove(self, node: ET.Element) -> None:
        self._require_marked(node)
        self._detach(node)

    def remove_empty_wrapper(self, node: ET.Element) -> None:
        if len(node) or self.own_text(node):
            raise ForeignNodeError(f"<{node.tag}> wrapper still holds content")
        self._detach(node)
