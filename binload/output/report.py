"""
binload JSON Report
====================

Serializes a loaded :class:`Binary` (and optionally a disassembly listing)
into a structured JSON document.  Section contents are not embedded; each
section carries the SHA-256 of its bytes instead.
"""

from __future__ import annotations

import hashlib
import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Iterable, Optional

from binload.analyzers.disassembler import Instruction
from binload.core.models import Binary

REPORT_VERSION: str = "1.0.0"


class BinloadReportGenerator:
    """Generate JSON reports for loaded binaries."""

    def build_report(
        self,
        binary: Binary,
        instructions: Optional[Iterable[Instruction]] = None,
    ) -> dict[str, Any]:
        """Return the report as a JSON-compatible dictionary."""
        data = binary.model_dump(mode="json")
        for entry, sec in zip(data["sections"], binary.sections):
            entry["sha256"] = hashlib.sha256(sec.data).hexdigest()

        report: dict[str, Any] = {
            "report_type": "binload_binary",
            "version": REPORT_VERSION,
            "generated_at": datetime.now(timezone.utc).isoformat(),
            "binary": data,
        }
        if instructions is not None:
            report["disassembly"] = [
                {
                    "address": insn.address,
                    "bytes": insn.raw_bytes.hex(),
                    "mnemonic": insn.mnemonic,
                    "op_str": insn.op_str,
                }
                for insn in instructions
            ]
        return report

    def generate_json(
        self,
        binary: Binary,
        output_path: str | Path,
        instructions: Optional[Iterable[Instruction]] = None,
    ) -> str:
        """Write the JSON report for *binary* to *output_path*.

        Returns:
            The absolute path of the generated report.
        """
        report = self.build_report(binary, instructions)
        path = Path(output_path)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(report, indent=2, default=str), encoding="utf-8")
        return str(path.resolve())
