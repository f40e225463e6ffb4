"""Integrity checks run on the assembled package before it is written.

Every check returns a list of ``(severity, message)`` issues.  A ``CRITICAL``
issue aborts the conversion; warnings are logged.
"""
from __future__ import annotations

import posixpath
import re
from typing import List, Tuple

from docx_manuscript.errors import IntegrityError, MalformedXml, MissingRequiredPart
from docx_manuscript.log import get_logger
from docx_manuscript.opc.compose import REL_ATTRS
from docx_manuscript.opc.content_types import CONTENT_TYPES_PART
from docx_manuscript.opc.package import MEDIA_DIR, Package
from docx_manuscript.wordml.numbering import Numbering
from docx_manuscript.wordml.oxml import get_paragraph_text
from docx_manuscript.wordml.styles import Styles

LOGGER = get_logger(__name__)

Issue = Tuple[str, str]

CRITICAL = "CRITICAL"
WARNING = "WARNING"
STYLE_REFERENCE_TAGS = ("w:pStyle", "w:rStyle", "w:tblStyle")
# Unnumbered lists point at numId 0.
NO_NUMBERING = "0"
PLACEHOLDER_RE = re.compile(r"\{\{\{[^{}]*\}\}\}")


def check_structure(package: Package) -> List[Issue]:
    """Required parts exist and every XML part is well-formed."""
    issues: List[Issue] = []
    try:
        main = package.main_document_path()
    except MissingRequiredPart as exc:
        return [(CRITICAL, str(exc))]
    if package.styles is None:
        issues.append((CRITICAL, "Missing style sheet part"))
    if not len(package.get_rels(main)):
        issues.append((WARNING, "Missing document relationships file"))

    for name in package.part_names():
        if name.endswith(".xml") or name.endswith(".rels"):
            try:
                package.get_part(name)
            except MalformedXml as exc:
                issues.append((CRITICAL, f"Malformed XML in {name}: {exc}"))
    return issues


def check_styles(package: Package) -> List[Issue]:
    """Every style referenced from a content part is defined."""
    if package.styles is None:
        return []
    defined = set(Styles(package.styles.node).by_id())
    issues: List[Issue] = []
    for resource in package.content_parts():
        missing = set()
        for site in resource.node.find_all(lambda n: n.get_tag_name() in STYLE_REFERENCE_TAGS):
            style_id = site.get_attr("w:val", "")
            if style_id not in defined:
                missing.add(style_id)
        for style_id in sorted(missing):
            issues.append((CRITICAL, f"{resource.path}: style {style_id!r} is not defined"))
    return issues


def check_numbering(package: Package) -> List[Issue]:
    """Every ``w:numId`` used in the document has a ``w:num`` definition."""
    referenced = set()
    for resource in package.content_parts():
        for node in resource.node.find_all("w:numId"):
            value = node.get_attr("w:val", "")
            if value != NO_NUMBERING:
                referenced.add(value)
    if not referenced:
        return []
    if package.numbering is None:
        return [(CRITICAL, f"Numbering ids {sorted(referenced)} used but the package has no numbering part")]
    numbering = Numbering(package.numbering.node)
    defined = set(numbering.num_ids())
    issues = [(CRITICAL, f"Numbering id {num_id} is not defined") for num_id in sorted(referenced - defined)]
    for num in numbering.nums:
        if numbering.get_abstract_num(num.abstract_num_id or "") is None:
            issues.append((CRITICAL, f"w:num {num.id} points at missing abstract numbering {num.abstract_num_id}"))
    return issues


def check_relationships(package: Package) -> List[Issue]:
    """Relationship ids used in content parts resolve, and internal targets exist."""
    issues: List[Issue] = []
    for resource in package.content_parts():
        rels = resource.rels
        for node in resource.node.find_all(lambda n: n.is_element()):
            for attr in REL_ATTRS:
                rel_id = node.get_attr(attr)
                if rel_id and rels.get(rel_id) is None:
                    issues.append((CRITICAL, f"{resource.path}: relationship {rel_id} is not defined"))
        for rel in rels:
            target = rels.resolve_target(rel)
            if target is not None and not package.has_part(target):
                issues.append((WARNING, f"{resource.path}: relationship {rel.id} targets missing part {target}"))
    return issues


def check_placeholders(package: Package) -> List[Issue]:
    """No ``{{{...}}}`` placeholder survives in the body, headers or footers."""
    issues: List[Issue] = []
    for resource in package.content_parts():
        for paragraph in resource.node.find_all("w:p"):
            for match in PLACEHOLDER_RE.findall(get_paragraph_text(paragraph)):
                issues.append((CRITICAL, f"{resource.path}: unsubstituted placeholder {match}"))
    return issues


def check_comments(package: Package) -> List[Issue]:
    """Comment markers in the main document match the comments part."""
    comments = package.comments
    if comments is None:
        return []
    issues: List[Issue] = []
    comment_ids = set()
    for comment in comments.node.find_all("w:comment"):
        cid = comment.get_attr("w:id")
        if cid in comment_ids:
            issues.append((WARNING, f"Duplicate comment ID: {cid}"))
        comment_ids.add(cid)

    document = package.document.node
    marker_ids = set()
    for tag in ("w:commentRangeStart", "w:commentRangeEnd", "w:commentReference"):
        marker_ids.update(node.get_attr("w:id") for node in document.find_all(tag))
    orphaned = marker_ids - comment_ids
    if orphaned:
        issues.append((WARNING, f"Orphaned comment markers (no comment): {sorted(orphaned)}"))
    return issues


def check_content_types(package: Package) -> List[Issue]:
    """Every part, media included, has a resolvable content type."""
    issues: List[Issue] = []
    for name in package.part_names():
        if name == CONTENT_TYPES_PART or name.endswith(".rels"):
            continue
        if package.content_types.get_content_type(name) is None:
            severity = WARNING if not name.startswith(MEDIA_DIR + "/") else CRITICAL
            extension = posixpath.splitext(name)[1] or name
            issues.append((severity, f"Part {name} has no content type ({extension})"))
    return issues


CHECKS = {
    "structure": check_structure,
    "styles": check_styles,
    "numbering": check_numbering,
    "relationships": check_relationships,
    "placeholders": check_placeholders,
    "comments": check_comments,
    "content-types": check_content_types,
}


def collect_issues(package: Package) -> List[Issue]:
    issues: List[Issue] = []
    for name, check in CHECKS.items():
        found = check(package)
        LOGGER.debug("Check %s: %d issue(s)", name, len(found))
        issues.extend(found)
        if name == "structure" and any(severity == CRITICAL for severity, _ in found):
            break
    return issues


def validate_package(package: Package) -> List[Issue]:
    """Run every check; raise :class:`IntegrityError` on a critical issue, return warnings."""
    issues = collect_issues(package)
    criticals = [message for severity, message in issues if severity == CRITICAL]
    warnings = [message for severity, message in issues if severity == WARNING]
    for message in warnings:
        LOGGER.warning(message)
    if criticals:
        raise IntegrityError(f"{len(criticals)} critical issue(s): " + "; ".join(criticals))
    return issues
