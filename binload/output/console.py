"""
binload Console Output
=======================

Rich-powered terminal display of a loaded :class:`Binary`: a header panel,
the section and symbol tables, and an optional disassembly listing.

References:
    - Rich library: https://github.com/Textualize/rich
"""

from __future__ import annotations

from typing import Iterable, Optional

from rich.markup import escape
from rich.panel import Panel

from shared.console import BinloadConsole

from binload.analyzers.disassembler import Instruction
from binload.core.models import Binary, Section, SectionType, Symbol


_SECTION_TYPE_COLOURS: dict[SectionType, str] = {
    SectionType.CODE: "bright_red",
    SectionType.DATA: "bright_green",
    SectionType.NONE: "dim",
}

# Bytes column width in the listing (x86 instructions are at most 15 bytes).
_BYTES_WIDTH: int = 15 * 3


def _hex_bytes(raw: bytes) -> str:
    return " ".join(f"{b:02x}" for b in raw)


class BinloadConsoleOutput:
    """Render loaded binaries to the terminal.

    Usage::

        output = BinloadConsoleOutput()
        output.display(binary)
    """

    def __init__(self, console: BinloadConsole | None = None) -> None:
        self._console: BinloadConsole = console or BinloadConsole()

    def display(
        self,
        binary: Binary,
        *,
        show_symbols: bool = True,
        listing: Optional[tuple[Section, Iterable[Instruction]]] = None,
    ) -> None:
        """Display everything known about *binary*.

        Args:
            binary: Loaded binary.
            show_symbols: Include the function symbol table.
            listing: Optional ``(section, instructions)`` pair to list.
        """
        self.display_header(binary)
        if binary.sections:
            self.display_sections(binary.sections)
        if show_symbols:
            self.display_symbols(binary.symbols)
        if listing is not None:
            self.display_disassembly(*listing)
        self._console.divider()

    def display_header(self, binary: Binary) -> None:
        """Display the binary descriptor panel."""
        lines: list[str] = [
            f"[bold]File:[/bold]         {escape(binary.filename)}",
            f"[bold]Format:[/bold]       {binary.type.value.upper()} ({binary.type_str})",
            f"[bold]Arch:[/bold]         {binary.arch_str} ({binary.bits}-bit)",
            f"[bold]Entry Point:[/bold]  0x{binary.entry:x}",
            f"[bold]Sections:[/bold]     {len(binary.sections)}",
            f"[bold]Symbols:[/bold]      {len(binary.symbols)}",
        ]
        panel = Panel(
            "\n".join(lines),
            title="[bold bright_cyan]Binary Information[/bold bright_cyan]",
            border_style="bright_cyan",
            padding=(1, 2),
        )
        self._console.rich.print(panel)
        self._console.blank()

    def display_sections(self, sections: list[Section]) -> None:
        """Display the section table."""
        self._console.section("Sections")
        rows = []
        for i, sec in enumerate(sections, 1):
            colour = _SECTION_TYPE_COLOURS[sec.type]
            rows.append((
                i,
                escape(sec.name),
                f"[{colour}]{sec.type.value.upper()}[/{colour}]",
                f"0x{sec.vma:016x}",
                f"0x{sec.end:016x}",
                f"{sec.size:,}",
            ))
        self._console.table(
            "",
            ["#", "Name", "Type", "Start", "End", "Size"],
            rows,
            styles=["dim", "bold", "", "binload.address", "binload.address", ""],
            justify=["right", "left", "left", "right", "right", "right"],
        )
        self._console.blank()

    def display_symbols(self, symbols: list[Symbol], max_display: int = 200) -> None:
        """Display function symbols, static table first."""
        self._console.section("Function Symbols")
        if not symbols:
            self._console.info("No function symbols (stripped binary?)")
            self._console.blank()
            return

        shown = symbols[:max_display]
        caption = None
        if len(symbols) > max_display:
            caption = f"{len(symbols) - max_display} more not shown"
        self._console.table(
            "",
            ["Address", "Name"],
            [(f"0x{sym.addr:016x}", escape(sym.name)) for sym in shown],
            caption=caption,
            styles=["binload.address", ""],
        )
        self._console.blank()

    def display_disassembly(self, section: Section, instructions: Iterable[Instruction]) -> None:
        """Print a linear listing of *instructions* decoded from *section*."""
        self._console.section(f"Disassembly of {section.name}")
        count = 0
        for insn in instructions:
            self._console.print(
                f"[binload.address]0x{insn.address:016x}[/binload.address]: "
                f"[binload.bytes]{_hex_bytes(insn.raw_bytes):<{_BYTES_WIDTH}}[/binload.bytes] "
                f"[binload.mnemonic]{insn.mnemonic}[/binload.mnemonic] {escape(insn.op_str)}"
            )
            count += 1
        self._console.blank()
        self._console.success(f"{count} instructions")
