import pytest

from docx_manuscript.config import ConversionConfig
from docx_manuscript.errors import MalformedMarkdown
from docx_manuscript.markdown import (
    flatten_text,
    iter_tokens,
    parse_attributes,
    parse_markdown,
    read_markdown,
    split_front_matter,
)

SOURCE = """---
ispras_templates:
  links:
    - id: knuth
      description: Knuth D. The Art of Computer Programming.
---

# Introduction {#sec:intro}

See section [sec:method]{.ref}, figure [fig:a]{.ref} and [knuth]{.cite}.

## Method {#sec:method}

![Logo](logo.png){width=4cm}

Back to [sec:intro]{.ref}, [fig:a]{.ref}, [oops]{.cite} and [note]{.highlight}.
"""


def _tokens(parsed, kind):
    return [token for token in iter_tokens(parsed.blocks) if token.get("type") == kind]


@pytest.fixture
def parsed():
    return parse_markdown(SOURCE, ConversionConfig())


def test_split_front_matter():
    data, body = split_front_matter("---\ntitle: X\n---\nBody\n")
    assert data == {"title": "X"}
    assert body == "Body\n"
    assert split_front_matter("No front matter") == ({}, "No front matter")


def test_front_matter_must_be_a_mapping():
    with pytest.raises(MalformedMarkdown):
        split_front_matter("---\n- a\n- b\n---\nBody\n")
    with pytest.raises(MalformedMarkdown, match="Front matter"):
        split_front_matter("---\ntitle: [x\n---\nBody\n")


def test_parse_attributes():
    assert parse_attributes('{width=5cm height="3 cm"}') == {"width": "5cm", "height": "3 cm"}
    assert parse_attributes("not a block") is None


def test_headings_are_numbered_and_labels_stripped(parsed):
    headings = _tokens(parsed, "heading")
    assert [flatten_text(h) for h in headings] == ["1. Introduction", "1.1 Method"]
    assert headings[0]["attrs"]["id"] == "sec:intro"


def test_references_and_citations_are_resolved(parsed):
    paragraphs = [flatten_text(p) for p in _tokens(parsed, "paragraph")]
    assert paragraphs[0] == "See section 1.1, figure 1 and [1]."
    assert paragraphs[-1] == "Back to 1, 1, [?] and note."
    assert not _tokens(parsed, "span")


def test_image_size_block(parsed):
    image = _tokens(parsed, "image")[0]
    assert image["attrs"]["size"] == {"width": "4cm"}
    assert image["attrs"]["url"] == "logo.png"


def test_meta_is_namespaced(parsed):
    assert parsed.meta.path == "ispras_templates"
    assert parsed.meta.get_string("links.0.id") == "knuth"
    assert '"meta"' in parsed.to_json()


def test_depth_threshold_from_config():
    parsed = parse_markdown("# Title\n\n## Part\n\n### Sub\n", ConversionConfig(depth_threshold=2))
    assert [flatten_text(h) for h in _tokens(parsed, "heading")] == ["Title", "1. Part", "1.1 Sub"]


def test_read_markdown_rejects_non_utf8(tmp_path):
    source = tmp_path / "bad.md"
    source.write_bytes(b"# \xff\xfe broken\n")
    with pytest.raises(MalformedMarkdown):
        read_markdown(source, ConversionConfig())


def test_read_markdown_records_source_dir(tmp_path):
    source = tmp_path / "doc.md"
    source.write_text("Plain text.\n", encoding="utf-8")
    assert read_markdown(source, ConversionConfig()).source_dir == tmp_path.resolve()


def test_empty_front_matter_is_consumed():
    assert split_front_matter("---\n---\nBody\n") == ({}, "Body\n")
    parsed = parse_markdown("---\n---\n\nText.\n", ConversionConfig())
    assert [token["type"] for token in parsed.blocks if token["type"] != "blank_line"] == ["paragraph"]


CAPTIONS = """# Results {#sec:results}

::: {.table-caption}
Table 1. Timings for section [sec:results]{.ref}
:::

| A | B |
|---|---|
| 1 | 2 |

::: listing-caption
Listing 1. Entry point
:::

```
main()
```
"""


def test_caption_divs_become_caption_tokens():
    parsed = parse_markdown(CAPTIONS, ConversionConfig())
    captions = _tokens(parsed, "caption")
    assert [c["attrs"]["class"] for c in captions] == ["table-caption", "listing-caption"]
    assert flatten_text(captions[0]) == "Table 1. Timings for section 1"
    assert flatten_text(captions[1]) == "Listing 1. Entry point"
    assert _tokens(parsed, "table") and _tokens(parsed, "block_code")
