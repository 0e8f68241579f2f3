#!/usr/bin/env python3
"""
Deck pipeline: ties together rendering, validation, notes, assembly and writing.
"""

import asyncio
import logging
import time
from pathlib import Path
from typing import Iterable, List, Optional, Union

from .assembler import DeckAssembler
from .config import PipelineConfig
from .errors import AssemblyFailed, DeckError
from .layout_validator import LayoutValidator
from .markdown_parser import MarkdownParser
from .measure import Measurer
from .models import BuildReport, ContentUnit, DeckSummary, SlideError, SlideUnit
from .notes import NotesAttacher
from .paths import prepare_workspace
from .renderer import SlideRenderer
from .writer import DeckWriter

logger = logging.getLogger(__name__)


class DeckPipeline:
    """
    Build one PowerPoint deck from content units.
    """

    def __init__(
        self,
        config: PipelineConfig,
        *,
        output_dir,
        base_dir: str = None,
        measurer: Optional[Measurer] = None,
        keep_tmp: bool = False,
        debug: bool = False,
    ):
        """Create a new :class:`DeckPipeline`.

        Parameters
        ----------
        config
            Geometry, limits and error policy for the run.
        output_dir
            Directory where the final PPTX will be written.  *Required*.
        base_dir
            Base directory for resolving relative image paths in markdown.
            If None, defaults to current working directory.
        measurer
            Element measurer; the estimating measurer is used when omitted.
        keep_tmp
            If ``True`` the scratch directory ``.deck_tmp`` inside
            *output_dir* is left on disk for inspection.
        debug
            Enable verbose logging.
        """
        self.config = config
        self.debug = debug
        self.base_dir = Path(base_dir) if base_dir else Path.cwd()

        self.workspace = prepare_workspace(output_dir, keep_tmp=keep_tmp)

        self.parser = MarkdownParser()
        self.renderer = SlideRenderer(
            config, base_dir=self.base_dir, measurer=measurer, parser=self.parser, debug=debug
        )
        self.validator = LayoutValidator(config)
        self.notes_attacher = NotesAttacher(config)
        self.writer = DeckWriter(config, tmp_dir=self.workspace.tmp_dir, debug=debug)

    def _resolve_output_path(self, output_path: Union[str, Path]) -> Path:
        output_path = str(output_path)
        if not output_path.endswith('.pptx'):
            output_path = f"{output_path}.pptx"

        output_path = Path(output_path)
        if not output_path.is_absolute() and len(output_path.parts) == 1:
            # If it's just a filename, put it in the output directory
            output_path = self.workspace.output_dir / output_path
        return output_path

    async def _render_all(self, units: List[ContentUnit]) -> List[Union[SlideUnit, BaseException]]:
        """Render every unit concurrently; results come back in unit order."""
        semaphore = asyncio.Semaphore(self.config.max_concurrency)

        async def _render_one(unit: ContentUnit):
            async with semaphore:
                return await self.renderer.render(unit)

        return await asyncio.gather(*(_render_one(unit) for unit in units), return_exceptions=True)

    async def build(self, units: Iterable[ContentUnit], output_path: Union[str, Path] = "deck.pptx") -> BuildReport:
        """
        Render, validate, annotate, assemble and write one deck.

        Renders run concurrently; everything after rendering happens one slide
        at a time in position order. Under fail-fast the first error stops the
        run; under collect every per-slide error lands in the report. Either
        way nothing is written unless the whole deck is valid.

        Returns:
            BuildReport: errors, non-fatal warnings and a run summary
        """
        start = time.perf_counter()
        output_path = self._resolve_output_path(output_path)
        units = sorted(units, key=lambda u: u.index)

        assembler = DeckAssembler(self.config)
        warnings: List[SlideError] = []
        errors: List[SlideError] = []
        write_result = None

        rendered = await self._render_all(units)

        try:
            for unit, result in zip(units, rendered):
                if isinstance(result, BaseException) and not isinstance(result, DeckError):
                    raise result
                try:
                    if isinstance(result, DeckError):
                        raise result
                    self.validator.validate(result)
                    warning = self.notes_attacher.attach(result, unit.notes)
                    if warning is not None:
                        warnings.append(SlideError.from_exception(warning))
                    assembler.append(result)
                except DeckError as exc:
                    assembler.fail(unit.index, exc)

            deck = assembler.finalize()
            write_result = self.writer.write(deck, output_path)
        except AssemblyFailed as exc:
            errors = [SlideError.from_exception(e) for e in exc.errors]
        except DeckError as exc:
            logger.error(f"❌ {exc}")
            errors = [SlideError.from_exception(exc)]

        summary = DeckSummary(
            slide_count=write_result.slide_count if write_result else assembler.count,
            artifact_size=write_result.size if write_result else 0,
            elapsed_seconds=round(time.perf_counter() - start, 4),
            output_path=write_result.path if write_result else None,
        )
        report = BuildReport(ok=not errors, errors=errors, warnings=warnings, summary=summary)

        if report.ok:
            logger.info(f"✅ Wrote {summary.slide_count} slides ({summary.artifact_size} bytes) "
                        f"to {summary.output_path} in {summary.elapsed_seconds:.2f}s")
        else:
            logger.error(f"❌ Deck not written: {len(errors)} error(s)")
        return report

    async def generate(self, markdown_text: str, output_path: Union[str, Path] = "deck.pptx") -> BuildReport:
        """
        Split a markdown document into content units and build the deck.
        """
        units = self.parser.split_units(markdown_text)
        if self.debug:
            for unit in units:
                logger.info(f"  Unit {unit.index}: {unit.title or 'untitled'} "
                            f"(notes: {len(unit.notes) if unit.notes else 0} chars)")
        return await self.build(units, output_path)


def main(argv=None):
    """Command-line entry point for the deck builder."""
    import argparse
    import json
    import sys

    from .config import ErrorPolicy
    from .measure import BrowserMeasurer
    from .theme_loader import list_available_themes, validate_theme

    def _build_parser() -> argparse.ArgumentParser:
        p = argparse.ArgumentParser(prog="deckbuilder", description="Assemble a PPTX deck with speaker notes from Markdown.")
        p.add_argument("markdown", type=Path, help="Markdown file to convert")
        p.add_argument("--output", "-o", type=Path, default=Path("output/deck.pptx"), help="Destination PPTX path")
        p.add_argument("--theme", "-t", default="default", help="CSS theme to use (default, dark, …)")
        p.add_argument("--expected-count", type=int, help="Number of slides the deck must contain (default: slides found in the markdown)")
        p.add_argument("--min-gap", type=int, help="Minimum vertical gap between stacked elements in px (default: theme --block-gap)")
        p.add_argument("--notes-limit", type=int, help="Maximum characters of speaker notes per slide")
        p.add_argument("--collect", action="store_true", help="Report every failing slide instead of stopping at the first")
        p.add_argument("--require-notes", action="store_true", help="Treat slides without speaker notes as errors")
        p.add_argument("--browser", action="store_true", help="Measure layout in headless Chromium (pyppeteer)")
        p.add_argument("--report", type=Path, help="Write the JSON build report to this path")
        p.add_argument("--asset-base", type=Path, help="Base directory for resolving relative asset paths (default: parent of markdown file)")
        p.add_argument("--keep-tmp", action="store_true", help="Keep .deck_tmp directory after run")
        p.add_argument("--debug", action="store_true", help="Enable verbose logging")
        return p

    async def _generate_async(args) -> BuildReport:
        md_path: Path = args.markdown
        markdown_text = md_path.read_text(encoding="utf-8")

        expected = args.expected_count
        if expected is None:
            expected = MarkdownParser().estimate_slide_count(markdown_text)

        config = PipelineConfig.from_theme(
            args.theme,
            expected_count=expected,
            min_gap=args.min_gap,
            notes_char_limit=args.notes_limit,
            strict_mode=ErrorPolicy.COLLECT if args.collect else ErrorPolicy.FAIL_FAST,
            require_notes=args.require_notes,
        )
        measurer = BrowserMeasurer(config, debug=args.debug) if args.browser else None

        pipeline = DeckPipeline(
            config,
            output_dir=args.output.parent,
            base_dir=args.asset_base if args.asset_base else md_path.parent,
            measurer=measurer,
            keep_tmp=args.keep_tmp,
            debug=args.debug,
        )
        return await pipeline.generate(markdown_text, args.output)

    args = _build_parser().parse_args(argv)

    logging.basicConfig(level=logging.DEBUG if args.debug else logging.INFO, format="%(levelname)s  %(message)s")

    if not args.markdown.exists():
        logger.error(f"Markdown file '{args.markdown}' not found")
        sys.exit(1)
    if not validate_theme(args.theme):
        logger.error(f"Unknown theme '{args.theme}'. Available themes: {list_available_themes()}")
        sys.exit(1)

    try:
        report = asyncio.run(_generate_async(args))
    except (DeckError, ValueError, OSError) as exc:
        logger.error(f"❌ {exc}")
        sys.exit(1)

    for entry in report.errors:
        logger.error(f"  slide {entry.index}: {entry.kind}: {entry.message}")

    if args.report:
        args.report.parent.mkdir(parents=True, exist_ok=True)
        args.report.write_text(json.dumps(report.to_dict(), indent=2), encoding="utf-8")

    sys.exit(0 if report.ok else 1)


if __name__ == "__main__":
    main()
