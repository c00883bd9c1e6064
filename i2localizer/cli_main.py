# -*- coding: utf-8 -*-
"""
I2 RTL Localizer CLI Main Module
"""

import sys
import asyncio
import argparse
import logging
from pathlib import Path
from typing import List, Optional

from i2localizer import __version__
from i2localizer.core.exceptions import I2LocalizerError, InvalidInputError, ParseError
from i2localizer.core.exporters import (
    EXPORT_FORMATS, export_extension, generate_output_file_name, save_export
)
from i2localizer.core.i2_parser import count_translated, filter_items
from i2localizer.core.line_buffer import LineBuffer
from i2localizer.core.merge_engine import MergeEngine
from i2localizer.core.rtl_shaper import shape_text
from i2localizer.core.task_runner import TaskRunner
from i2localizer.core.translation_loader import TranslationMapLoader
from i2localizer.utils.config import ConfigManager
from i2localizer.utils.encoding import read_text_safely
from i2localizer.utils.validation import is_valid_slot_index, sanitize_filename, validate_input_file

VARIANTS = ('plain', 'shaped', 'both')


class CliProgress:
    """Prints task progress as a single status line."""

    def __init__(self, stream=None):
        self.stream = stream or sys.stdout
        self.last = None

    def __call__(self, task_type: str, percent: int):
        if (task_type, percent) == self.last:
            return
        self.last = (task_type, percent)
        self.stream.write(f"\rProgress: {task_type.lower()} {percent}%")
        if percent >= 100:
            self.stream.write("\n")
        self.stream.flush()


def setup_logging(verbose: bool):
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[logging.StreamHandler()]
    )


def _check_input(path: str, config: ConfigManager) -> None:
    result = validate_input_file(path, config.app_settings.max_file_size)
    if not result.valid:
        raise InvalidInputError(result.error)


def _check_slot(slot: int, config: ConfigManager) -> None:
    max_slot = config.extraction_settings.max_slot
    if not is_valid_slot_index(slot, max_slot):
        raise InvalidInputError(f"Language slot must be between 0 and {max_slot}: {slot}")


def _read(path: str) -> str:
    content = read_text_safely(Path(path))
    if content is None:
        raise ParseError(f"Could not read file: {path}")
    return content


def _make_runner(config: ConfigManager, use_worker: bool) -> TaskRunner:
    settings = config.worker_settings
    if not use_worker:
        settings.use_worker = False
    return TaskRunner(
        settings,
        progress_callback=CliProgress(),
        progress_interval=config.extraction_settings.progress_interval,
    )


# ============================================================================
# COMMAND HANDLERS
# ============================================================================

async def _extract(args, config: ConfigManager):
    async with _make_runner(config, not args.no_worker) as runner:
        return await runner.extract(_read(args.input), args.slot)


def run_extract_command(args, config: ConfigManager) -> int:
    """Export the items of one language slot for translators."""
    _check_input(args.input, config)
    _check_slot(args.slot, config)

    items = asyncio.run(_extract(args, config))
    if not items:
        print(f"No items found for slot {args.slot}")
        return 0

    if args.filter:
        items = filter_items(items, args.filter)
        if not items:
            print(f"No items match '{args.filter}'")
            return 0

    fmt = args.format or config.output_settings.export_format
    output = args.output or str(Path(args.input).with_suffix(export_extension(fmt)))
    if not save_export(items, output, fmt, encoding=config.output_settings.encoding):
        return 1

    print(f"Extracted {len(items)} item(s) -> {output}")
    return 0


async def _apply(args, config: ConfigManager, translations):
    async with _make_runner(config, not args.no_worker) as runner:
        content = _read(args.input)
        buffer = LineBuffer.from_text(content)
        items = await runner.extract(content, args.slot)

        results = {}
        if args.variant in ('plain', 'both'):
            results['plain'] = await runner.merge_apply(buffer, items, translations)
        if args.variant in ('shaped', 'both'):
            results['shaped'] = await runner.merge_shaped(buffer, items, translations)
        return items, results


def run_apply_command(args, config: ConfigManager) -> int:
    """Merge a translation document into a string table dump."""
    _check_input(args.input, config)
    _check_input(args.translations, config)
    _check_slot(args.slot, config)

    loader = TranslationMapLoader()
    translations = loader.load_file(args.translations)
    if not translations:
        print("No translations found in the translation file")
        return 0

    items, results = asyncio.run(_apply(args, config, translations))
    print(f"Items: {len(items)}  Translations: {len(translations)} ({loader.last_format})  "
          f"Translated: {count_translated(items, translations)}/{len(items)}")

    output_settings = config.output_settings
    suffixes = {
        'plain': output_settings.translated_suffix,
        'shaped': output_settings.shaped_suffix,
    }
    output_dir = Path(args.output) if args.output else Path(args.input).parent
    output_dir.mkdir(parents=True, exist_ok=True)

    engine = MergeEngine()
    for variant, result in results.items():
        name = sanitize_filename(generate_output_file_name(Path(args.input).name, suffixes[variant]))
        target = output_dir / name
        if not engine.save(result.buffer, str(target), output_settings.encoding, output_settings.write_bom):
            return 1
        print(f"{variant}: {result.applied_count} line(s) rewritten -> {target}")

    return 0


def run_shape_command(args, config: ConfigManager) -> int:
    print(shape_text(args.text))
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="i2localizer",
        description="I2 RTL Localizer - translate I2 Localization string tables"
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--config", default="config.json", help="Path to the configuration file")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")

    subparsers = parser.add_subparsers(dest="command")

    extract = subparsers.add_parser("extract", help="Export the items of one language slot")
    extract.add_argument("input", help="String table dump (.txt)")
    extract.add_argument("--slot", type=int, default=None, help="Language slot index")
    extract.add_argument("--format", choices=EXPORT_FORMATS, default=None, help="Export format")
    extract.add_argument("--filter", help="Only export items whose term or text contains this")
    extract.add_argument("-o", "--output", help="Output file")
    extract.add_argument("--no-worker", action="store_true", help="Run in process")

    apply = subparsers.add_parser("apply", help="Merge translations into a string table dump")
    apply.add_argument("input", help="String table dump (.txt)")
    apply.add_argument("translations", help="Translation document (.txt, .json, .csv, .tsv)")
    apply.add_argument("--slot", type=int, default=None, help="Language slot index")
    apply.add_argument("--variant", choices=VARIANTS, default="both", help="Which output files to write")
    apply.add_argument("-o", "--output", help="Output directory (defaults to the input directory)")
    apply.add_argument("--no-worker", action="store_true", help="Run in process")

    shape = subparsers.add_parser("shape", help="Print the RTL shaped form of a text")
    shape.add_argument("text")

    return parser


COMMANDS = {
    "extract": run_extract_command,
    "apply": run_apply_command,
    "shape": run_shape_command,
}


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 1

    setup_logging(args.verbose)
    config = ConfigManager(args.config)

    if getattr(args, "slot", 0) is None:
        args.slot = config.extraction_settings.target_slot

    try:
        return COMMANDS[args.command](args, config)
    except I2LocalizerError as e:
        logging.getLogger(__name__).error(str(e))
        return 1
    except KeyboardInterrupt:
        print("\nInterrupted")
        return 130


if __name__ == "__main__":
    sys.exit(main())
