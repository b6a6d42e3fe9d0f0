import json

import pytest
from click.testing import CliRunner

from binload.cli import binload_cli


@pytest.fixture
def runner():
    return CliRunner()


def test_load_and_disassemble(runner, elf64_path):
    result = runner.invoke(binload_cli, [str(elf64_path)])
    assert result.exit_code == 0, result.output
    assert "elf64-x86-64" in result.stdout
    assert "push" in result.stdout
    assert "7 instructions" in result.stdout


def test_json_output(runner, elf64_path):
    result = runner.invoke(binload_cli, [str(elf64_path), "--json"])
    assert result.exit_code == 0, result.output
    report = json.loads(result.stdout)
    assert report["report_type"] == "binload_binary"
    assert report["binary"]["bits"] == 64
    assert [s["name"] for s in report["binary"]["sections"]] == [".text", ".rodata", ".data"]
    assert len(report["binary"]["sections"][0]["sha256"]) == 64
    assert report["disassembly"][0]["mnemonic"] == "push"


def test_no_disasm(runner, pe64_path):
    result = runner.invoke(binload_cli, [str(pe64_path), "--no-disasm", "--json"])
    assert result.exit_code == 0, result.output
    report = json.loads(result.stdout)
    assert "disassembly" not in report
    assert report["binary"]["type"] == "pe"
    assert [s["name"] for s in report["binary"]["symbols"]] == [
        "main", "long_function_name", "exported_fn",
    ]


def test_output_report(runner, elf32_path, tmp_path):
    out = tmp_path / "reports" / "hello32.json"
    result = runner.invoke(binload_cli, [str(elf32_path), "-o", str(out), "--no-symbols"])
    assert result.exit_code == 0, result.output
    report = json.loads(out.read_text())
    assert report["binary"]["type_str"] == "elf32-i386"
    assert report["disassembly"][-1]["mnemonic"] == "ret"


def test_missing_file(runner, tmp_path):
    result = runner.invoke(binload_cli, [str(tmp_path / "missing")])
    assert result.exit_code == 1
    assert "OpenError" in result.output


def test_format_mismatch(runner, elf64_path):
    result = runner.invoke(binload_cli, [str(elf64_path), "--format", "pe"])
    assert result.exit_code == 1
    assert "UnsupportedFormat" in result.output


def test_missing_section(runner, elf64_path):
    result = runner.invoke(binload_cli, [str(elf64_path), "--section", ".plt"])
    assert result.exit_code == 1
    assert "DisassemblyError" in result.output


def test_config_file(runner, elf64_path, tmp_path):
    config = tmp_path / "binload.toml"
    config.write_text('[disasm]\nsection = ".rodata"\nmax_instructions = 1\n')
    result = runner.invoke(binload_cli, [str(elf64_path), "-c", str(config), "--json"])
    assert result.exit_code == 0, result.output
    report = json.loads(result.stdout)
    assert len(report["disassembly"]) == 1
    assert report["disassembly"][0]["address"] == 0x402000


def test_invalid_config(runner, elf64_path, tmp_path):
    config = tmp_path / "bad.toml"
    config.write_text('[loader]\ndefault_format = "macho"\n')
    result = runner.invoke(binload_cli, [str(elf64_path), "-c", str(config)])
    assert result.exit_code == 1
    assert "Invalid configuration" in result.output
