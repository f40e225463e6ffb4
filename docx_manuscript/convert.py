"""End-to-end conversion: Markdown manuscript -> house-styled ``.docx``."""
from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Dict, List, Optional

from docx_manuscript.config import BULLET_LIST, ORDERED_LIST, ConversionConfig
from docx_manuscript.errors import MissingRequiredPart
from docx_manuscript.generator import render_document
from docx_manuscript.log import get_logger
from docx_manuscript.markdown import ParsedDocument, read_markdown
from docx_manuscript.opc.compose import PackageComposer, transplant_references
from docx_manuscript.opc.package import Package
from docx_manuscript.reconcile.lists import ListBinding, add_new_numberings, apply_list_styles, strip_markers
from docx_manuscript.reconcile.styles import StyleReconciler
from docx_manuscript.templates.house import BODY, HouseTemplate
from docx_manuscript.templates.substitution import StyleAwareSubstitution
from docx_manuscript.validate import Issue, validate_package
from docx_manuscript.wordml.numbering import Numbering
from docx_manuscript.wordml.oxml import get_document_body
from docx_manuscript.wordml.styles import Styles
from docx_manuscript.xmltree import Node

LOGGER = get_logger(__name__)

SECTION_PROPERTIES = "w:sectPr"
LIST_KINDS = (ORDERED_LIST, BULLET_LIST)


@dataclass
class ConversionResult:
    package: Package
    parsed: ParsedDocument
    warnings: List[Issue] = field(default_factory=list)


def debug_json_path(source: Path) -> Path:
    """``paper.md`` -> ``paper.md.json``, next to the source."""
    return source.with_name(source.name + ".json")


def list_bindings(config: ConversionConfig, house_id: Callable[[str], str]) -> Dict[str, ListBinding]:
    bindings = {}
    for kind in LIST_KINDS:
        rule = config.list_rule(kind)
        bindings[kind] = ListBinding(house_id(rule.style_name), rule.numbering_id)
    return bindings


def body_content(document: Node) -> List[Node]:
    """Children of the document body, minus its section properties."""
    body = get_document_body(document)
    return body.get_children(lambda node: node.get_tag_name() != SECTION_PROPERTIES)


def _numbering_of(package: Package) -> Numbering:
    resource = package.numbering
    if resource is None:
        raise MissingRequiredPart(f"{package.origin}: the template has no numbering part")
    return Numbering(resource.node)


def _page_parts(package: Package) -> List[Node]:
    return [resource.node for resource in package.headers + package.footers]


def merge_reconciled(template: Package, content: Package, parsed: ParsedDocument,
                     config: ConversionConfig) -> Package:
    """Reconcile the styles and move the template around the content; returns *content*."""
    result = StyleReconciler(template, content, config).reconcile()

    document = content.document
    created = apply_list_styles(document.node, list_bindings(config, result.house_id),
                                config.list_numbering_base)
    strip_markers(document.node)
    LOGGER.debug("Allocated %d list numbering(s)", len(created))

    composed = PackageComposer(template, content).compose()
    skeleton_body = get_document_body(composed.document)
    house = HouseTemplate(parsed.meta, config, result.house_id)
    house.substitute_body(skeleton_body, body_content(document.node))
    house.substitute_metadata(skeleton_body, _page_parts(content))

    add_new_numberings(_numbering_of(content), created)
    content.set_part_tree(document.path, composed.document)
    return content


def merge_strict(template: Package, content: Package, parsed: ParsedDocument,
                 config: ConversionConfig) -> Package:
    """Copy the content into the template, mapping every style by name; returns *template*."""
    house_resource = template.styles
    content_resource = content.styles
    if house_resource is None or content_resource is None:
        raise MissingRequiredPart("Both the template and the generated content need a style sheet")
    house_styles = Styles(house_resource.node)
    incoming_styles = Styles(content_resource.node)

    name_table = {}
    for generic_id, house_name in config.style_patch.items():
        style = incoming_styles.find(generic_id)
        if style is not None and style.name:
            name_table[style.name] = house_name

    def house_id(name: str) -> str:
        return house_styles.get_style_by_name(name, "template styles").id

    source = content.document
    target = template.document
    nodes = body_content(source.node)
    transplant_references(content, source.path, template, target.path, nodes)

    body = get_document_body(target.node)
    StyleAwareSubstitution(BODY, incoming_styles, house_styles, name_table,
                           config.passthrough_styles).perform(body, nodes)

    created = apply_list_styles(target.node, list_bindings(config, house_id), config.list_numbering_base)
    strip_markers(target.node)
    add_new_numberings(_numbering_of(template), created)

    HouseTemplate(parsed.meta, config, house_id).substitute_metadata(body, _page_parts(template))
    return template


def convert(source: Path, config: ConversionConfig, template_path: Optional[Path] = None,
            json_path: Optional[Path] = None) -> ConversionResult:
    """Run the whole pipeline in memory; nothing is written except the debug JSON."""
    source = Path(source)
    parsed = read_markdown(source, config)
    json_path = json_path or debug_json_path(source)
    json_path.write_text(parsed.to_json(), encoding="utf-8")
    LOGGER.debug("Wrote %s", json_path)

    content = Package.from_bytes(render_document(parsed, config), origin=f"{source.name} (generated)")
    template_path = template_path or config.template_path()
    print(f"Using template: {template_path}")
    template = Package.load(template_path)

    if config.strict_styles:
        package = merge_strict(template, content, parsed, config)
    else:
        package = merge_reconciled(template, content, parsed, config)

    warnings = validate_package(package)
    return ConversionResult(package, parsed, warnings)


def convert_file(source: Path, target: Path, config: ConversionConfig) -> ConversionResult:
    """Convert *source* and write *target*; the target is only written on success."""
    print(f"Reading: {source}")
    result = convert(source, config)
    result.package.save(target)
    print(f"Saved: {target}")
    return result
