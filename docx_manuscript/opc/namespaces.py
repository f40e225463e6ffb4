"""Known OOXML namespace prefixes and the root-element declaration fix-up."""
from __future__ import annotations

from typing import Dict, Set

from docx_manuscript.xmltree import Node

NAMESPACES: Dict[str, str] = {
    "wpc": "http://schemas.microsoft.com/office/word/2010/wordprocessingCanvas",
    "cx": "http://schemas.microsoft.com/office/drawing/2014/chartex",
    "mc": "http://schemas.openxmlformats.org/markup-compatibility/2006",
    "aink": "http://schemas.microsoft.com/office/drawing/2016/ink",
    "am3d": "http://schemas.microsoft.com/office/drawing/2017/model3d",
    "o": "urn:schemas-microsoft-com:office:office",
    "oel": "http://schemas.microsoft.com/office/2019/extlst",
    "r": "http://schemas.openxmlformats.org/officeDocument/2006/relationships",
    "m": "http://schemas.openxmlformats.org/officeDocument/2006/math",
    "v": "urn:schemas-microsoft-com:vml",
    "wp14": "http://schemas.microsoft.com/office/word/2010/wordprocessingDrawing",
    "wp": "http://schemas.openxmlformats.org/drawingml/2006/wordprocessingDrawing",
    "w10": "urn:schemas-microsoft-com:office:word",
    "w": "http://schemas.openxmlformats.org/wordprocessingml/2006/main",
    "w14": "http://schemas.microsoft.com/office/word/2010/wordml",
    "w15": "http://schemas.microsoft.com/office/word/2012/wordml",
    "w16cex": "http://schemas.microsoft.com/office/word/2018/wordml/cex",
    "w16cid": "http://schemas.microsoft.com/office/word/2016/wordml/cid",
    "w16": "http://schemas.microsoft.com/office/word/2018/wordml",
    "w16du": "http://schemas.microsoft.com/office/word/2023/wordml/word16du",
    "w16sdtdh": "http://schemas.microsoft.com/office/word/2020/wordml/sdtdatahash",
    "w16se": "http://schemas.microsoft.com/office/word/2015/wordml/symex",
    "wpg": "http://schemas.microsoft.com/office/word/2010/wordprocessingGroup",
    "wpi": "http://schemas.microsoft.com/office/word/2010/wordprocessingInk",
    "wne": "http://schemas.microsoft.com/office/word/2006/wordml",
    "wps": "http://schemas.microsoft.com/office/word/2010/wordprocessingShape",
    "a": "http://schemas.openxmlformats.org/drawingml/2006/main",
    "pic": "http://schemas.openxmlformats.org/drawingml/2006/picture",
    "sl": "http://schemas.openxmlformats.org/schemaLibrary/2006/main",
    "a14": "http://schemas.microsoft.com/office/drawing/2010/main",
    "xml": "http://www.w3.org/XML/1998/namespace",
}

# Prefixes Word may skip when it does not understand them.
IGNORABLE_PREFIXES = ("w14", "w15", "w16se", "w16cid", "w16", "w16cex", "w16sdtdh", "w16du", "wp14")

W = NAMESPACES["w"]
R = NAMESPACES["r"]
M = NAMESPACES["m"]
MC = NAMESPACES["mc"]


def _prefix_of(qname: str):
    if ":" not in qname:
        return None
    return qname.split(":", 1)[0]


def used_prefixes(root: Node) -> Set[str]:
    """Every namespace prefix used by an element or attribute name below *root*."""
    found: Set[str] = set()

    def collect(node: Node):
        prefix = _prefix_of(node.get_tag_name())
        if prefix:
            found.add(prefix)
        for name in node.get_attrs():
            if name == "xmlns" or name.startswith("xmlns:") or name == "mc:Ignorable":
                continue
            prefix = _prefix_of(name)
            if prefix:
                found.add(prefix)

    root.visit_subtree(lambda node: node.is_element(), collect)
    found.discard("xml")
    return found


def fix_namespaces(root: Node) -> None:
    """Declare exactly the known prefixes used in *root*'s subtree on *root*.

    Declarations for unknown prefixes are left alone; a root without any
    known prefix is not touched.  ``mc:Ignorable`` keeps its earlier entries
    whose declarations survive and gains the forward compatibility prefixes
    that are actually used.
    """
    used = used_prefixes(root)
    attrs = root.get_attrs()

    def stays_declared(prefix: str) -> bool:
        if prefix in NAMESPACES:
            return prefix in used
        return f"xmlns:{prefix}" in attrs

    ignorable = [prefix for prefix in attrs.get("mc:Ignorable", "").split() if stays_declared(prefix)]
    ignorable += [prefix for prefix in IGNORABLE_PREFIXES if prefix in used and prefix not in ignorable]
    if ignorable:
        used.add("mc")
    known = [prefix for prefix in NAMESPACES if prefix in used and prefix != "xml"]
    if not known:
        return
    kept ={name: value for name, value in attrs.items()
            if not (name.startswith("xmlns:") and name[len("xmlns:"):] in NAMESPACES)}
    declarations = {f"xmlns:{prefix}": NAMESPACES[prefix] for prefix in known}
    rebuilt: Dict[str, str] = {}
    for name, value in kept.items():
        if name == "xmlns" or name.startswith("xmlns:"):
            rebuilt[name] = value
    rebuilt.update(declarations)
    for name, value in kept.items():
        if name == "xmlns" or name.startswith("xmlns:") or name == "mc:Ignorable":
            continue
        rebuilt[name] = value
    if ignorable:
        rebuilt["mc:Ignorable"] = " ".join(ignorable)
    root.replace_attrs(rebuilt)
