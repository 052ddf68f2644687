"""
PEDump CLI -- Portable Executable Inspector
=============================================

Click-based command-line interface.  One command, one file: the selected
parts of the decoded image are printed as an indented tree, or the whole
image is emitted as JSON.

Usage::

    # Headers only
    pedump app.exe --dos-header --nt-header --optional-header

    # Code sections with hex and disassembly
    pedump app.exe --sections --sections-filter "^\\.text$" --sections-data --disasm

    # Imported DLLs and functions
    pedump kernel32.dll --imports

    # Machine-readable output
    pedump app.exe --json
    pedump app.exe --output report.json

References:
    - Click documentation: https://click.palletsprojects.com/
"""

from __future__ import annotations

import re
import sys
from typing import Optional

import click
from rich.markup import escape

from shared.config import PEDumpConfig
from shared.console import PEDumpConsole
from shared.logger import PEDumpLogger

from pedump.core.engine import PEDumpEngine
from pedump.core.errors import PEDumpError
from pedump.output.console import PEDumpConsoleOutput
from pedump.output.report import PEDumpReportGenerator


def _validate_regex(
    ctx: click.Context, param: click.Parameter, value: Optional[str]
) -> Optional[str]:
    if value is None:
        return value
    try:
        re.compile(value)
    except re.error as exc:
        raise click.BadParameter(f"invalid regular expression: {exc}") from exc
    return value


# ---------------------------------------------------------------------------
# Command
# ---------------------------------------------------------------------------

@click.command("pedump")
@click.argument("path", type=click.Path())
@click.option("--dos-header", is_flag=True, default=False, help="Dump the DOS header.")
@click.option(
    "--nt-header", is_flag=True, default=False,
    help="Dump the PE signature and COFF header.",
)
@click.option(
    "--optional-header", is_flag=True, default=False,
    help="Dump the optional header and data directories.",
)
@click.option("--sections", is_flag=True, default=False, help="Dump section headers.")
@click.option(
    "--sections-filter",
    default=None,
    callback=_validate_regex,
    help="Regex applied to section names.  Default: config or '.*'.",
)
@click.option(
    "--sections-data", is_flag=True, default=False,
    help="Include the raw bytes of each section as hex.",
)
@click.option(
    "--disasm", is_flag=True, default=False,
    help="Disassemble executable sections (x86 / x64).",
)
@click.option(
    "--imports", is_flag=True, default=False,
    help="Dump imported DLLs and functions.",
)
@click.option(
    "--padding-size",
    type=click.IntRange(min=0),
    default=None,
    help="Indent width of the tree dump.  Default: config or 4.",
)
@click.option(
    "--json", "json_output",
    is_flag=True,
    default=False,
    help="Output the decoded image as JSON to stdout.",
)
@click.option(
    "--output", "-o",
    "output_path",
    type=click.Path(),
    default=None,
    help="Write a JSON report to this path.",
)
@click.option(
    "--config", "config_path",
    type=click.Path(),
    default=None,
    help="TOML configuration file.",
)
@click.option(
    "--verbose", "-v",
    is_flag=True,
    default=False,
    help="Enable verbose/debug output.",
)
def pedump_cli(
    path: str,
    dos_header: bool,
    nt_header: bool,
    optional_header: bool,
    sections: bool,
    sections_filter: Optional[str],
    sections_data: bool,
    disasm: bool,
    imports: bool,
    padding_size: Optional[int],
    json_output: bool,
    output_path: Optional[str],
    config_path: Optional[str],
    verbose: bool,
) -> None:
    """PEDump -- Portable Executable Inspector.

    PATH is the .exe or .dll file to decode.

    Examples:

    \b
        # Headers of a DLL
        pedump C:/Windows/System32/kernel32.dll --nt-header --optional-header

    \b
        # Disassemble the .text section
        pedump app.exe --disasm --sections-filter "^\\.text$"
    """
    console = PEDumpConsole()

    try:
        config = PEDumpConfig.load(config_path)
    except (OSError, ValueError) as exc:
        console.error(escape(f"Could not load configuration: {exc}"))
        sys.exit(1)

    settings = config.global_settings
    if verbose:
        log_level = "DEBUG"
    elif json_output:
        # stdout carries the JSON document
        log_level = "WARNING"
    else:
        log_level = settings.log_level
    logger = PEDumpLogger(
        "engine",
        log_level=log_level,
        log_file=settings.log_file,
        json_logs=settings.log_json,
    )

    engine = PEDumpEngine(config=config, logger=logger)
    try:
        image = engine.parse(path)
    except KeyboardInterrupt:
        console.warning("Interrupted by user.")
        sys.exit(130)
    except PEDumpError as exc:
        console.error(escape(str(exc)))
        sys.exit(1)

    report_gen = PEDumpReportGenerator()

    if json_output:
        click.echo(report_gen.render(image, source=path))
        if output_path:
            # stdout is the JSON document; no status line
            report_gen.generate_json(image, output_path, source=path)
        return

    dump = config.pedump
    output_display = PEDumpConsoleOutput(
        console=console,
        padding_size=dump.padding_size if padding_size is None else padding_size,
        hexdump_width=dump.hexdump_width,
    )
    try:
        output_display.display(
            image,
            dos_header=dos_header,
            nt_header=nt_header,
            optional_header=optional_header,
            sections=sections,
            sections_filter=sections_filter or dump.sections_filter,
            sections_data=sections_data,
            disasm=disasm,
            imports=imports,
            strip_padding=dump.strip_padding,
        )
    except PEDumpError as exc:
        console.error(escape(str(exc)))
        sys.exit(1)

    if output_path:
        report_path = report_gen.generate_json(image, output_path, source=path)
        console.success(f"JSON report saved: {report_path}")


# ---------------------------------------------------------------------------
# Module entry point
# ---------------------------------------------------------------------------

def main() -> None:
    """Entry point for ``pedump`` and ``python -m pedump``."""
    pedump_cli()


if __name__ == "__main__":
    main()
