import pytest
from PIL import Image

from conftest import logo_png
from qrstudio.cli import build_parser, main


def test_parser_defaults():
    args = build_parser().parse_args(["generate", "https://example.com"])
    assert args.format == "png"
    assert args.size == 800
    assert args.style == "squares"
    assert args.ecc == "M"
    assert args.finder_style == "square"


def test_generate_png(tmp_path):
    out = tmp_path / "code.png"
    main(["generate", "https://example.com", "-o", str(out), "--size", "400", "--style", "dots"])
    assert Image.open(out).size == (400, 400)


def test_generate_svg_with_logo(tmp_path):
    logo = tmp_path / "logo.png"
    logo.write_bytes(logo_png())
    out = tmp_path / "code.svg"
    main(["generate", "hello", "-o", str(out), "-f", "svg", "--logo", str(logo), "--logo-size", "25"])
    text = out.read_text(encoding="utf-8")
    assert text.startswith("<?xml")
    assert "data:image/png;base64," in text


def test_config_error_exits_with_status_2(tmp_path, capsys):
    with pytest.raises(SystemExit) as info:
        main(["generate", "hello", "-o", str(tmp_path / "x.png"), "--fg", "red"])
    assert info.value.code == 2
    assert "invalid colour" in capsys.readouterr().err


def test_geometry_error_exits_with_status_2(tmp_path):
    with pytest.raises(SystemExit) as info:
        main(["generate", "hello", "-o", str(tmp_path / "x.png"), "--size", "10"])
    assert info.value.code == 2


def test_no_command_prints_help():
    with pytest.raises(SystemExit) as info:
        main([])
    assert info.value.code == 1


def test_missing_logo_file_exits_with_status_2(tmp_path, capsys):
    with pytest.raises(SystemExit) as info:
        main(["generate", "hello", "-o", str(tmp_path / "x.png"), "--logo", str(tmp_path / "missing.png")])
    assert info.value.code == 2
    assert "cannot read logo" in capsys.readouterr().err
    assert not (tmp_path / "x.png").exists()


def test_over_budget_logo_prints_summary(tmp_path, capsys):
    logo = tmp_path / "logo.png"
    logo.write_bytes(logo_png())
    out = tmp_path / "code.png"
    main(["generate", "https://example.com/menu", "-o", str(out), "-e", "M", "--logo", str(logo)])
    assert out.exists()
    assert "OVER BUDGET" in capsys.readouterr().err
