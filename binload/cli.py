"""
binload CLI
============

Click-based command-line interface: load an ELF or PE executable, print its
normalized sections and function symbols, and disassemble one section.

Usage::

    # Load and disassemble .text
    binload /bin/ls

    # Force PE, list symbols only
    binload app.exe --format pe --no-disasm

    # Disassemble another section, JSON to stdout
    binload /bin/ls --section .plt --json

    # Write a JSON report
    binload /bin/ls --output report.json

Exit codes: 0 on success, 1 on any load or disassembly failure (the
diagnostic goes to stderr), 130 when interrupted.

References:
    - Click documentation: https://click.palletsprojects.com/
"""

from __future__ import annotations

import json
import sys
from typing import Optional

import click

from shared.config import BinloadConfig
from shared.console import BinloadConsole
from shared.logger import BinloadLogger

from binload.analyzers.disassembler import Disassembler, DisassemblyError, Instruction
from binload.core.builder import BinaryBuilder
from binload.core.errors import LoadError
from binload.core.models import Binary, Section
from binload.output.console import BinloadConsoleOutput
from binload.output.report import BinloadReportGenerator


@click.command("binload")
@click.argument("path", type=click.Path(dir_okay=True))
@click.option(
    "--format", "-f",
    "file_format",
    type=click.Choice(["auto", "elf", "pe"], case_sensitive=False),
    default=None,
    help="Binary format override.  Default: from config (auto-detect).",
)
@click.option(
    "--section", "-s",
    "section_name",
    default=None,
    help="Section to disassemble.  Default: from config (.text).",
)
@click.option(
    "--no-disasm",
    is_flag=True,
    default=False,
    help="Do not disassemble any section.",
)
@click.option(
    "--symbols/--no-symbols",
    default=True,
    help="Show the function symbol table (default: on).",
)
@click.option(
    "--json", "json_output",
    is_flag=True,
    default=False,
    help="Output results as JSON to stdout.",
)
@click.option(
    "--output", "-o",
    "output_path",
    type=click.Path(),
    default=None,
    help="Write a JSON report to this path.",
)
@click.option(
    "--config", "-c",
    "config_path",
    type=click.Path(),
    default=None,
    help="Path to a TOML configuration file.",
)
@click.option(
    "--verbose", "-v",
    is_flag=True,
    default=False,
    help="Enable verbose/debug logging.",
)
def binload_cli(
    path: str,
    file_format: Optional[str],
    section_name: Optional[str],
    no_disasm: bool,
    symbols: bool,
    json_output: bool,
    output_path: Optional[str],
    config_path: Optional[str],
    verbose: bool,
) -> None:
    """binload -- normalized loader for ELF and PE executables.

    PATH is the executable to load (x86 or x86-64).
    """
    console = BinloadConsole()

    try:
        config = BinloadConfig.load(config_path)
    except (OSError, ValueError) as exc:
        console.error(f"Invalid configuration: {exc}")
        sys.exit(1)

    logger = BinloadLogger.from_config("loader", config.global_settings, verbose=verbose)
    requested = (file_format or config.loader.default_format).lower()
    section_name = section_name or config.disasm.section

    try:
        binary = BinaryBuilder(config=config, logger=logger).build(path, requested)
    except KeyboardInterrupt:
        console.warning("Loading interrupted by user.")
        sys.exit(130)
    except LoadError as exc:
        console.error(f"{exc.kind}: {exc}")
        sys.exit(1)

    with binary:
        listing: Optional[tuple[Section, list[Instruction]]] = None
        if not no_disasm:
            try:
                listing = _disassemble(binary, section_name, config)
            except KeyboardInterrupt:
                console.warning("Disassembly interrupted by user.")
                sys.exit(130)
            except DisassemblyError as exc:
                console.error(f"DisassemblyError: {exc}")
                sys.exit(1)

        instructions = listing[1] if listing is not None else None
        report_gen = BinloadReportGenerator()

        if json_output:
            report = report_gen.build_report(binary, instructions)
            click.echo(json.dumps(report, indent=2, default=str))
        else:
            BinloadConsoleOutput(console=console).display(
                binary, show_symbols=symbols, listing=listing,
            )

        if output_path:
            report_path = report_gen.generate_json(binary, output_path, instructions)
            if not json_output:
                console.success(f"JSON report saved: {report_path}")


def _disassemble(
    binary: Binary,
    section_name: str,
    config: BinloadConfig,
) -> tuple[Section, list[Instruction]]:
    section = binary.get_section(section_name)
    if section is None:
        raise DisassemblyError(f"no {section_name} section in {binary.filename}")
    dis = Disassembler(
        max_instructions=config.disasm.max_instructions,
        syntax=config.disasm.syntax,
    )
    return section, list(dis.disassemble_section(binary, section))


# ---------------------------------------------------------------------------
# Module entry point
# ---------------------------------------------------------------------------

def main() -> None:
    """Entry point for the ``binload`` console script."""
    binload_cli()


if __name__ == "__main__":
    main()
