import pytest

from docx_manuscript.config import (
    DEFAULT_LIST_STYLES,
    ConversionConfig,
    ListRule,
    config_from_mapping,
    load_config,
)
from docx_manuscript.errors import MalformedInput, MissingTemplate


def test_defaults_resolve_the_shipped_template():
    config = load_config(None)
    assert config.languages == ["ru", "en"]
    assert config.template_path().is_dir()
    assert config.list_rule("OrderedList") == ListRule("ispNumList", "33")


def test_yaml_file_overrides_defaults(tmp_path):
    path = tmp_path / "conf.yaml"
    path.write_text(
        "languages: [en]\n"
        "depth_threshold: 2\n"
        "template_directory: templates\n"
        "list_styles:\n"
        "  BulletList: {style_name: Bullets, numbering_id: 7}\n",
        encoding="utf-8",
    )
    config = load_config(path)
    assert config.languages == ["en"]
    assert config.depth_threshold == 2
    assert config.template_directory == tmp_path / "templates"
    assert config.list_styles["BulletList"] == ListRule("Bullets", "7")
    assert config.list_styles["OrderedList"] == DEFAULT_LIST_STYLES["OrderedList"]


def test_unknown_keys_are_rejected():
    with pytest.raises(MalformedInput, match="Unknown config keys: colour"):
        config_from_mapping({"colour": "red"})


@pytest.mark.parametrize("data", [
    {"languages": "ru"},
    {"style_patch": ["x"]},
    {"list_styles": {"BulletList": {"style_name": "x"}}},
])
def test_malformed_values(data):
    with pytest.raises(MalformedInput):
        config_from_mapping(data)


def test_config_file_must_be_a_mapping(tmp_path):
    path = tmp_path / "conf.yaml"
    path.write_text("- just\n- a list\n", encoding="utf-8")
    with pytest.raises(MalformedInput):
        load_config(path)


def test_missing_template(tmp_path):
    config = ConversionConfig(template_directory=tmp_path, template_name="nowhere")
    with pytest.raises(MissingTemplate):
        config.template_path()


def test_template_file_suffix_is_optional(tmp_path):
    (tmp_path / "house.docx").write_bytes(b"")
    config = ConversionConfig(template_directory=tmp_path, template_name="house")
    assert config.template_path() == tmp_path / "house.docx"


def test_with_overrides_skips_none():
    config = ConversionConfig().with_overrides(strict_styles=None, depth_threshold=3)
    assert config.strict_styles is False
    assert config.depth_threshold == 3
    with pytest.raises(MalformedInput):
        config.list_rule("NumberedTable")
