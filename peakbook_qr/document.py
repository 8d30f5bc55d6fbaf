"""Structural SVG document model.

The sticker composer builds a tree of :class:`SvgNode` objects and a
renderer turns it into output. :class:`StringRenderer` produces SVG text,
:class:`ElementRenderer` produces ``xml.etree.ElementTree`` elements for
callers that want to inspect or post-process the document.
"""

import copy
import xml.etree.ElementTree as ET
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from xml.sax.saxutils import escape, quoteattr

SVG_NS = "http://www.w3.org/2000/svg"
XLINK_NS = "http://www.w3.org/1999/xlink"

ET.register_namespace("", SVG_NS)
ET.register_namespace("xlink", XLINK_NS)

XML_NS = "http://www.w3.org/XML/1998/namespace"

_NAMESPACE_PREFIXES = {SVG_NS: "", XLINK_NS: "xlink:", XML_NS: "xml:"}


def format_number(value) -> str:
    """Format a coordinate with at most two decimals and no trailing zeros."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return str(value)
    rounded = round(float(value), 2)
    if rounded == int(rounded):
        return str(int(rounded))
    return f"{rounded:.2f}".rstrip("0")


@dataclass
class SvgNode:
    """One SVG element. Attribute values may be numbers or strings.

    ``tail`` is the character data that follows the element inside its
    parent, as in ElementTree.
    """

    tag: str
    attrs: dict = field(default_factory=dict)
    children: list["SvgNode"] = field(default_factory=list)
    text: str | None = None
    tail: str | None = None

    def append(self, child: "SvgNode") -> "SvgNode":
        self.children.append(child)
        return child

    def iter(self):
        yield self
        for child in self.children:
            yield from child.iter()

    def find(self, node_id: str) -> "SvgNode | None":
        for node in self.iter():
            if node.attrs.get("id") == node_id:
                return node
        return None

    def remove(self, node_id: str) -> bool:
        """Remove the first descendant with the given id."""
        for node in self.iter():
            for child in node.children:
                if child.attrs.get("id") == node_id:
                    node.children.remove(child)
                    return True
        return False

    def copy(self) -> "SvgNode":
        return copy.deepcopy(self)


def _local_name(name: str) -> str | None:
    """Turn an ElementTree ``{ns}name`` into ``name``, ``xlink:name`` or ``xml:name``.

    Names in any other namespace (editor metadata and the like) give None.
    """
    if name.startswith("{"):
        namespace, _, local = name[1:].partition("}")
        prefix = _NAMESPACE_PREFIXES.get(namespace)
        return None if prefix is None else prefix + local
    return name


def _character_data(value: str | None) -> str | None:
    # whitespace-only runs are formatting, not content
    return value if value and value.strip() else None


def from_element(element: ET.Element) -> SvgNode:
    """Convert a parsed ElementTree subtree into nodes.

    Elements and attributes from foreign namespaces are dropped.
    """
    attrs = {}
    for key, value in element.attrib.items():
        name = _local_name(key)
        if name is not None:
            attrs[name] = value

    node = SvgNode(
        tag=_local_name(element.tag) or element.tag,
        attrs=attrs,
        text=_character_data(element.text),
        tail=_character_data(element.tail),
    )
    for child in element:
        if isinstance(child.tag, str) and _local_name(child.tag) is not None:
            node.append(from_element(child))
        elif child.tail and child.tail.strip():
            _append_text(node, child.tail)
    return node


def _append_text(node: SvgNode, text: str) -> None:
    """Keep text that followed a dropped child."""
    if node.children:
        last = node.children[-1]
        last.tail = (last.tail or "") + text
    else:
        node.text = (node.text or "") + text


# ---------------------------------------------------------------------------
# Renderers
# ---------------------------------------------------------------------------

class DocumentRenderer(ABC):
    """Turns a node tree into an output representation."""

    @abstractmethod
    def render(self, node: SvgNode):
        ...


class StringRenderer(DocumentRenderer):
    """Render nodes as SVG markup.

    Numbers are rounded to two decimals; the XML declaration is left to
    the caller.
    """

    def __init__(self, indent: str | None = None):
        self.indent = indent

    def render(self, node: SvgNode) -> str:
        parts: list[str] = []
        self._render(node, parts, 0)
        return ("\n" if self.indent is not None else "").join(parts)

    def _render(self, node: SvgNode, parts: list[str], depth: int) -> None:
        pad = self.indent * depth if self.indent is not None else ""
        attrs = "".join(
            f" {name}={quoteattr(format_number(value))}"
            for name, value in node.attrs.items()
            if value is not None
        )

        if not node.children and node.text is None:
            parts.append(f"{pad}<{node.tag}{attrs}/>")
        elif not node.children:
            parts.append(f"{pad}<{node.tag}{attrs}>{escape(node.text)}</{node.tag}>")
        else:
            opening = f"{pad}<{node.tag}{attrs}>"
            if node.text is not None:
                opening += escape(node.text)
            parts.append(opening)
            for child in node.children:
                self._render(child, parts, depth + 1)
            parts.append(f"{pad}</{node.tag}>")

        if node.tail is not None:
            parts[-1] += escape(node.tail)


class ElementRenderer(DocumentRenderer):
    """Render nodes as namespaced ElementTree elements."""

    def render(self, node: SvgNode) -> ET.Element:
        element = ET.Element(self._qualify(node.tag))
        for name, value in node.attrs.items():
            if value is None or name == "xmlns" or name.startswith("xmlns:"):
                continue
            element.set(self._qualify(name, attribute=True), format_number(value))
        element.text = node.text
        element.tail = node.tail
        for child in node.children:
            element.append(self.render(child))
        return element

    @staticmethod
    def _qualify(name: str, attribute: bool = False) -> str:
        if name.startswith("xlink:"):
            return f"{{{XLINK_NS}}}{name[6:]}"
        if name.startswith("xml:"):
            return f"{{{XML_NS}}}{name[4:]}"
        if attribute:
            return name
        return f"{{{SVG_NS}}}{name}"
