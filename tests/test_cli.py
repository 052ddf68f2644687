"""Command-line behaviour through click's test runner."""

import json

from click.testing import CliRunner

from pedump.cli import pedump_cli


def test_wrong_extension_exits_1(tmp_path):
    path = tmp_path / "notes.txt"
    path.write_bytes(b"MZ")
    result = CliRunner().invoke(pedump_cli, [str(path)])
    assert result.exit_code == 1
    assert "not a Portable Executable" in result.output


def test_missing_file_exits_1(tmp_path):
    result = CliRunner().invoke(pedump_cli, [str(tmp_path / "missing.exe")])
    assert result.exit_code == 1
    assert "does not exist" in result.output


def test_malformed_file_exits_1(tmp_path):
    path = tmp_path / "broken.dll"
    path.write_bytes(b"ZM" + bytes(100))
    result = CliRunner().invoke(pedump_cli, [str(path)])
    assert result.exit_code == 1
    assert "Invalid DOS magic" in result.output


def test_json_output_parses(pe_file):
    result = CliRunner().invoke(pedump_cli, [str(pe_file), "--json"])
    assert result.exit_code == 0, result.output
    payload = json.loads(result.stdout)
    assert payload["image"]["architecture"] == "PE32"
    assert payload["image"]["dll_names"] == ["KERNEL32.dll", "USER32.dll"]


def test_tree_dump(pe_file):
    result = CliRunner().invoke(
        pedump_cli,
        [str(pe_file), "--dos-header", "--nt-header", "--optional-header",
         "--sections", "--imports", "--padding-size", "2"],
    )
    assert result.exit_code == 0, result.output
    assert "DOS Header" in result.output
    assert "COFF Header" in result.output
    assert "Optional Header (PE32)" in result.output
    assert "Section .text" in result.output
    assert "ExitProcess" in result.output


def test_output_report(pe_file, tmp_path):
    report = tmp_path / "report.json"
    result = CliRunner().invoke(pedump_cli, [str(pe_file), "--output", str(report)])
    assert result.exit_code == 0, result.output
    assert json.loads(report.read_text())["source"] == str(pe_file)


def test_invalid_sections_filter(pe_file):
    result = CliRunner().invoke(pedump_cli, [str(pe_file), "--sections-filter", "("])
    assert result.exit_code == 2


def test_bad_config_exits_1(pe_file, tmp_path):
    config = tmp_path / "pedump.toml"
    config.write_text("[pedump]\npadding_size = -\n")
    result = CliRunner().invoke(pedump_cli, [str(pe_file), "--config", str(config)])
    assert result.exit_code == 1
    assert "Could not load configuration" in result.output


def test_directory_with_pe_extension_exits_1(tmp_path):
    folder = tmp_path / "folder.exe"
    folder.mkdir()
    result = CliRunner().invoke(pedump_cli, [str(folder)])
    assert result.exit_code == 1
    assert "Cannot read" in result.output


def test_zero_hexdump_width_in_config_exits_1(pe_file, tmp_path):
    config = tmp_path / "pedump.toml"
    config.write_text("[pedump]\nhexdump_width = 0\n")
    result = CliRunner().invoke(
        pedump_cli, [str(pe_file), "--sections-data", "--config", str(config)]
    )
    assert result.exit_code == 1
    assert "hexdump_width" in result.output


def test_json_with_output_writes_both(pe_file, tmp_path):
    report = tmp_path / "report.json"
    result = CliRunner().invoke(
        pedump_cli, [str(pe_file), "--json", "--output", str(report)]
    )
    assert result.exit_code == 0, result.output
    printed = json.loads(result.stdout)
    written = json.loads(report.read_text())
    assert written["image"] == printed["image"]
