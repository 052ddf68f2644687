"""
PEDump Report Generator
========================

JSON export of a decoded :class:`PEImage`.

The report wraps :meth:`PEImage.to_dict` in a small envelope carrying
the tool version, the generation time and the source path, so that the
output can be archived or diffed across builds of the same binary.
"""

from __future__ import annotations

import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional

from pedump import __version__
from pedump.core.image import PEImage


# ---------------------------------------------------------------------------
# PEDumpReportGenerator
# ---------------------------------------------------------------------------

class PEDumpReportGenerator:
    """Build and write JSON reports for decoded images.

    Usage::

        generator = PEDumpReportGenerator()
        print(generator.render(image))
        generator.generate_json(image, "report.json", source="app.exe")
    """

    REPORT_TYPE = "pedump_image"

    def build(self, image: PEImage, source: Optional[str] = None) -> dict[str, Any]:
        """Return the report as a JSON-compatible dictionary."""
        return {
            "report_type": self.REPORT_TYPE,
            "version": __version__,
            "generated_at": datetime.now(timezone.utc).isoformat(),
            "source": source,
            "image": image.to_dict(),
        }

    def render(self, image: PEImage, source: Optional[str] = None) -> str:
        """Return the report serialised as indented JSON text."""
        return json.dumps(
            self.build(image, source), indent=2, ensure_ascii=False, default=str
        )

    def generate_json(
        self,
        image: PEImage,
        output_path: str | Path,
        source: Optional[str] = None,
    ) -> str:
        """Write the report to *output_path*.

        Returns:
            The absolute path of the generated report.
        """
        path = Path(output_path)
        path.parent.mkdir(parents=True, exist_ok=True)

        with open(path, "w", encoding="utf-8") as f:
            f.write(self.render(image, source))

        return str(path.resolve())
