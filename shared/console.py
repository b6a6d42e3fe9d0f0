"""
binload Console Interface
==========================

Rich-powered console abstraction providing one presentation layer for the
binload command-line tool.

Results go to stdout; diagnostics (errors, warnings) go to a separate
stderr console so that piping the output of ``binload`` stays clean.

References:
    - Rich library: https://github.com/Textualize/rich
"""

from __future__ import annotations

from typing import Any, Sequence

from rich.console import Console
from rich.table import Table
from rich.theme import Theme

# ---------------------------------------------------------------------------
# Theme -- consistent palette across all binload output
# ---------------------------------------------------------------------------
_BINLOAD_THEME = Theme(
    {
        "binload.section": "bold bright_magenta",
        "binload.success": "bold green",
        "binload.warning": "bold yellow",
        "binload.error": "bold red",
        "binload.info": "bold bright_blue",
        "binload.dim": "dim white",
        "binload.address": "bright_cyan",
        "binload.bytes": "dim",
        "binload.mnemonic": "bold bright_white",
    }
)


class BinloadConsole:
    """Unified console interface for binload output.

    Usage::

        con = BinloadConsole()
        con.section("Sections")
        con.success("Loaded binary")
    """

    def __init__(
        self,
        *,
        quiet: bool = False,
        record: bool = False,
        no_color: bool = False,
    ) -> None:
        """Initialise the console.

        Args:
            quiet:    Suppress all output (useful in library / test mode).
            record:   Enable Rich recording for export.
            no_color: Disable colour styling.
        """
        self._console = Console(
            theme=_BINLOAD_THEME,
            quiet=quiet,
            record=record,
            highlight=False,
            no_color=no_color,
        )
        self._err_console = Console(
            theme=_BINLOAD_THEME,
            stderr=True,
            quiet=quiet,
            highlight=False,
            no_color=no_color,
        )

    # ------------------------------------------------------------------ #
    #  Properties
    # ------------------------------------------------------------------ #

    @property
    def rich(self) -> Console:
        """Direct access to the underlying stdout Rich Console."""
        return self._console

    # ------------------------------------------------------------------ #
    #  Section header
    # ------------------------------------------------------------------ #

    def section(self, title: str) -> None:
        """Print a prominent section header."""
        self._console.rule(
            f"  {title}  ",
            style="binload.section",
            characters="─",
        )

    # ------------------------------------------------------------------ #
    #  Message helpers
    # ------------------------------------------------------------------ #

    def success(self, message: str) -> None:
        """Print a success message to stdout."""
        self._console.print(
            f"[binload.success][✔][/binload.success] {message}"
        )

    def info(self, message: str) -> None:
        """Print an informational message to stdout."""
        self._console.print(
            f"[binload.info][ℹ][/binload.info] {message}"
        )

    def warning(self, message: str) -> None:
        """Print a warning message to stderr."""
        self._err_console.print(
            f"[binload.warning]WARNING:[/binload.warning] {message}"
        )

    def error(self, message: str) -> None:
        """Print an error message to stderr."""
        self._err_console.print(
            f"[binload.error]ERROR:[/binload.error] {message}"
        )

    # ------------------------------------------------------------------ #
    #  Table display
    # ------------------------------------------------------------------ #

    def table(
        self,
        title: str,
        columns: Sequence[str],
        rows: Sequence[Sequence[Any]],
        *,
        caption: str | None = None,
        styles: Sequence[str] | None = None,
        justify: Sequence[str] | None = None,
    ) -> None:
        """Render a styled Rich table.

        Args:
            title:    Table title.
            columns:  Column header labels.
            rows:     Iterable of row tuples; each element is stringified.
            caption:  Optional footer caption.
            styles:   Optional per-column Rich style strings.
            justify:  Optional per-column justification.
        """
        tbl = Table(
            title=title,
            caption=caption,
            border_style="bright_cyan",
            header_style="bold bright_magenta",
            padding=(0, 1),
        )
        for idx, col_name in enumerate(columns):
            style = styles[idx] if styles and idx < len(styles) else ""
            just = justify[idx] if justify and idx < len(justify) else "left"
            tbl.add_column(col_name, style=style, justify=just)  # type: ignore[arg-type]

        for row in rows:
            tbl.add_row(*(str(cell) for cell in row))

        self._console.print(tbl)

    # ------------------------------------------------------------------ #
    #  Utility
    # ------------------------------------------------------------------ #

    def print(self, *args: Any, **kwargs: Any) -> None:
        """Proxy to :meth:`rich.console.Console.print`."""
        self._console.print(*args, **kwargs)

    def blank(self, count: int = 1) -> None:
        """Print *count* blank lines."""
        for _ in range(count):
            self._console.print()

    def divider(self, style: str = "dim") -> None:
        """Print a thin horizontal rule."""
        self._console.rule(style=style)
