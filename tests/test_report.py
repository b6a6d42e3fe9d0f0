import hashlib
import json

from binload import load_binary
from binload.analyzers.disassembler import Disassembler
from binload.output.console import BinloadConsoleOutput
from binload.output.report import BinloadReportGenerator
from shared.console import BinloadConsole

import images


def test_report_contents(elf64_path):
    with load_binary(elf64_path) as binary:
        report = BinloadReportGenerator().build_report(binary)

    assert report["version"] == "1.0.0"
    assert "disassembly" not in report
    text = report["binary"]["sections"][0]
    assert text["name"] == ".text"
    assert text["type"] == "code"
    assert text["vma"] == 0x401000
    assert text["sha256"] == hashlib.sha256(images.X86_64_CODE).hexdigest()
    assert report["binary"]["arch"] == "x86"


def test_generate_json_writes_file(pe32_path, tmp_path):
    with load_binary(pe32_path) as binary:
        insns = list(Disassembler().disassemble_section(binary, binary.get_text_section()))
        written = BinloadReportGenerator().generate_json(binary, tmp_path / "r.json", insns)

    report = json.loads(open(written, encoding="utf-8").read())
    assert report["binary"]["bits"] == 32
    assert report["disassembly"][0] == {
        "address": 0x401000, "bytes": "55", "mnemonic": "push", "op_str": "ebp",
    }


def test_console_display(elf32_path):
    console = BinloadConsole(record=True, no_color=True)
    with load_binary(elf32_path) as binary:
        text = binary.get_text_section()
        listing = (text, Disassembler().disassemble_section(binary, text))
        BinloadConsoleOutput(console=console).display(binary, listing=listing)

    out = console.rich.export_text()
    assert "elf32-i386" in out
    assert "_start" in out
    assert "7 instructions" in out
