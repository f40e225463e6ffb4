"""Merge the house template's styles into the generated package.

The *source* is the house template, the *target* the generated content
package.  Every style the template needs is renamed to a collision-proof
``template-N`` alias, copied into the target, and target styles with the same
names (or listed in the explicit patch table) are removed and redirected to
the aliased house styles.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Set

from docx_manuscript.config import ConversionConfig
from docx_manuscript.errors import MissingNamedStyle, MissingRequiredPart, UnknownStyleId
from docx_manuscript.log import get_logger
from docx_manuscript.opc.package import Package
from docx_manuscript.wordml.styles import Style, Styles
from docx_manuscript.xmltree import Node

LOGGER = get_logger(__name__)

ALIAS_PREFIX = "template-"
# Style references inside content parts.
CONTENT_STYLE_TAGS = ("w:pStyle", "w:rStyle", "w:tblStyle")
# Style references inside the numbering part.
NUMBERING_STYLE_TAGS = ("w:pStyle", "w:styleLink", "w:numStyleLink")


def _collect(root: Node, tags: Iterable[str]) -> List[Node]:
    tags = tuple(tags)
    return root.find_all(lambda node: node.get_tag_name() in tags)


def style_use_sites(package: Package) -> List[Node]:
    """Every element of *package* whose ``w:val`` names a style."""
    sites: List[Node] = []
    for resource in package.content_parts():
        sites.extend(_collect(resource.node, CONTENT_STYLE_TAGS))
    numbering = package.numbering
    if numbering is not None:
        sites.extend(_collect(numbering.node, NUMBERING_STYLE_TAGS))
    return sites


def style_cross_references(styles: Styles) -> List[Node]:
    sites: List[Node] = []
    for style in styles:
        sites.extend(style.reference_nodes())
    return sites


def get_used_styles(sites: Iterable[Node]) -> List[str]:
    used: List[str] = []
    for site in sites:
        value = site.get_attr("w:val")
        if value and value not in used:
            used.append(value)
    return used


def deep_closure(styles: Styles, initial: Iterable[str]) -> List[str]:
    """*initial* plus every style reachable through basedOn/link/next, in discovery order."""
    by_id = styles.by_id()
    closure: List[str] = []
    pending = list(initial)
    while pending:
        style_id = pending.pop(0)
        if style_id in closure:
            continue
        style = by_id.get(style_id)
        if style is None:
            raise UnknownStyleId(style_id)
        closure.append(style_id)
        pending.extend(ref for ref in style.references() if ref not in closure)
    return closure


def alias_table(closure: Iterable[str]) -> Dict[str, str]:
    return {style_id: f"{ALIAS_PREFIX}{index}" for index, style_id in enumerate(closure)}


def patch_references(sites: Iterable[Node], table: Dict[str, str]) -> int:
    """Rewrite ``w:val`` of every site found in *table*; returns the number of changes."""
    changed = 0
    for site in sites:
        value = site.get_attr("w:val")
        if value is not None and value in table:
            site.set_attr("w:val", table[value])
            changed += 1
    return changed


@dataclass
class ReconcileResult:
    alias_map: Dict[str, str]
    patch: Dict[str, str]
    removed: Set[str]
    house_ids: Dict[str, str] = field(default_factory=dict)

    def house_id(self, name: str) -> str:
        """Id of the aliased house style called *name*."""
        try:
            return self.house_ids[name]
        except KeyError:
            raise MissingNamedStyle(name, "reconciled styles") from None


def _styles_of(package: Package, role: str) -> Styles:
    resource = package.styles
    if resource is None:
        raise MissingRequiredPart(f"{package.origin}: {role} package has no style sheet")
    return Styles(resource.node)


class StyleReconciler:
    """Merges the *source* (house template) styles into the *target* package."""

    def __init__(self, source: Package, target: Package, config: ConversionConfig):
        self.source = source
        self.target = target
        self.config = config

    def required_names(self) -> List[str]:
        names = list(self.config.required_styles)
        extra = list(self.config.style_patch.values())
        extra += [rule.style_name for rule in self.config.list_styles.values()]
        for name in extra:
            if name not in names:
                names.append(name)
        return names

    def reconcile(self) -> ReconcileResult:
        source_styles = _styles_of(self.source, "template")
        target_styles = _styles_of(self.target, "content")

        # 1. closure of used + required styles in the template
        required = [source_styles.get_style_by_name(name, "template styles").id for name in self.required_names()]
        source_sites = style_use_sites(self.source)
        closure = deep_closure(source_styles, get_used_styles(source_sites) + required)

        # 2. alias every style in the closure, definitions and use sites alike
        aliases = alias_table(closure)
        patch_references(source_sites + style_cross_references(source_styles), aliases)
        for style in source_styles:
            if style.id in aliases:
                style.id = aliases[style.id]
        alias_ids = set(aliases.values())
        extracted = [Style(style.node.deep_copy()) for style in source_styles if style.id in alias_ids]
        house_ids = source_styles.ids_by_name(extracted)
        LOGGER.debug("Aliased %d template styles", len(extracted))

        # 3. explicit patch table first, then name collisions
        target_ids = {style.id for style in target_styles}
        patch: Dict[str, str] = {}
        removed: Set[str] = set()
        for generic_id, house_name in self.config.style_patch.items():
            if house_name not in house_ids:
                raise MissingNamedStyle(house_name, "template styles")
            patch[generic_id] = house_ids[house_name]
            if generic_id in target_ids:
                removed.add(generic_id)
        target_by_name = target_styles.ids_by_name()
        for name, source_id in house_ids.items():
            target_id = target_by_name.get(name)
            if target_id is not None:
                patch.setdefault(target_id, source_id)
                removed.add(target_id)
        removed.update(style_id for style_id in self.config.extra_styles_to_remove if style_id in target_ids)

        # 4. prune, append and copy the singleton blocks
        for style in target_styles:
            if style.id in removed:
                target_styles.remove_style(style)
        for style in extracted:
            target_styles.add_style(style)
        target_styles.replace_singleton("w:docDefaults", source_styles.doc_defaults)
        target_styles.replace_singleton("w:latentStyles", source_styles.latent_styles)

        changed = patch_references(style_use_sites(self.target) + style_cross_references(target_styles), patch)
        LOGGER.debug("Removed %d content styles, patched %d references", len(removed), changed)
        return ReconcileResult(aliases, patch, removed, house_ids)
