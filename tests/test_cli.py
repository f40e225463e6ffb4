import pytest

from conftest import HOUSE_CONFIG_YAML
from docx_manuscript.cli import build_parser, main, make_config
from docx_manuscript.opc.package import Package


@pytest.fixture
def config_file(tmp_path):
    path = tmp_path / "house.yaml"
    path.write_text(HOUSE_CONFIG_YAML, encoding="utf-8")
    return path


def test_successful_run(manuscript, house_template_file, config_file, tmp_path, capsys):
    target = tmp_path / "paper.docx"
    code = main([str(manuscript), str(target), "--template", str(house_template_file),
                 "--config", str(config_file)])
    out = capsys.readouterr().out
    assert code == 0
    assert "Using template:" in out
    assert f"Saved: {target}" in out
    assert Package.load(target).document is not None


def test_missing_source(tmp_path, capsys):
    code = main([str(tmp_path / "absent.md"), str(tmp_path / "out.docx")])
    assert code == 1
    assert "Error: Input file not found" in capsys.readouterr().err


def test_conversion_error_leaves_no_output(manuscript, config_file, tmp_path, capsys):
    target = tmp_path / "out.docx"
    code = main([str(manuscript), str(target), "--template", str(tmp_path / "absent.docx"),
                 "--config", str(config_file)])
    assert code == 1
    assert "Error: Reference template not found" in capsys.readouterr().err
    assert not target.exists()


def test_bad_config(manuscript, tmp_path, capsys):
    config = tmp_path / "bad.yaml"
    config.write_text("colour: red\n", encoding="utf-8")
    assert main([str(manuscript), str(tmp_path / "out.docx"), "--config", str(config)]) == 1
    assert "Unknown config keys" in capsys.readouterr().err


def test_usage_error():
    with pytest.raises(SystemExit) as info:
        main([])
    assert info.value.code == 2


def test_flags_override_the_config(config_file, tmp_path):
    args = build_parser().parse_args([
        "in.md", "out.docx", "--config", str(config_file), "--template", str(tmp_path / "house.dotx"),
        "--strict-styles",
    ])
    config = make_config(args)
    assert config.strict_styles is True
    assert config.template_directory == tmp_path
    assert config.template_name == "house.dotx"
    assert config.languages == ["ru"]
