#!/usr/bin/env python3
"""
Spatial Grid Image Analysis - Main Entry Point

Analyzes product photos with a vision model, breaks them into a 4x4 grid
and helps target image edits at specific grid cells.

Usage:
    python main.py --analyze URL                      Analyze one image
    python main.py --front URL --back URL             Analyze product views
    python main.py --analyze URL --place logo         Suggest a logo position
    python main.py --score A1,B2 --actual B2,C3       Score an applied edit
"""
import argparse
import asyncio
import json
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent))

from config.settings import AnalysisConfig
from rich.console import Console
from src.spatial import (
    ELEMENT_TYPES,
    expand_prompt,
    identify_affected_squares,
    score_edit_precision,
    suggest_placement,
    visualize_grid,
)

console = Console()


class CustomHelpFormatter(argparse.RawDescriptionHelpFormatter):
    """Custom formatter that preserves formatting and adds width."""

    def __init__(self, prog):
        super().__init__(prog, max_help_position=40, width=100)


def split_cells(value: str) -> list[str]:
    """Parse a comma-separated cell list ("A1, B2" -> ["A1", "B2"])."""
    return [cell.strip() for cell in value.split(",") if cell.strip()]


def parse_args(argv=None):
    """Parse command line arguments."""

    epilog = """
━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
EXAMPLES
━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
  Analysis:
    python main.py --analyze URL                   Grid analysis of one image
    python main.py --analyze URL --visualize       Also draw the grid
    python main.py --front URL --back URL          Multi-view analysis
    python main.py --front URL --side URL --parallel

  Edit Targeting:
    python main.py --analyze URL --place pattern   Where should a pattern go?
    python main.py --analyze URL --edit "Add a logo to the chest"

  Scoring:
    python main.py --score A1,B2 --actual B2,C3    Precision of an applied edit

  Cache:
    python main.py --no-cache --analyze URL        Skip Supabase cache
    python main.py --cleanup-cache                 Delete expired cache rows

━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
NOTES
━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
  • Requires .env file with OPENAI_API_KEY for analysis
  • SUPABASE_URL and SUPABASE_KEY enable the shared analysis cache
"""

    parser = argparse.ArgumentParser(
        prog="python main.py",
        description="""
━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
                     SPATIAL GRID PRODUCT IMAGE ANALYSIS
━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
Describes product photos cell by cell on a 4x4 grid (A1-D4) and uses the grid to:
  • Annotate edit instructions with the cells they target
  • Suggest placements for logos, text, patterns and decorations
  • Score how precisely an edit hit its target cells
""",
        epilog=epilog,
        formatter_class=CustomHelpFormatter,
    )

    analysis_group = parser.add_argument_group(
        "Analysis", "Run the vision model on product images"
    )

    analysis_group.add_argument(
        "--analyze", type=str, metavar="URL", help="Analyze a single image"
    )

    analysis_group.add_argument(
        "--front", type=str, metavar="URL", help="Front view image URL"
    )

    analysis_group.add_argument(
        "--back", type=str, metavar="URL", help="Back view image URL"
    )

    analysis_group.add_argument(
        "--side", type=str, metavar="URL", help="Side view image URL"
    )

    analysis_group.add_argument(
        "--product-name",
        type=str,
        default="Product",
        metavar="NAME",
        help="Product name used in prompts (default: Product)",
    )

    analysis_group.add_argument(
        "--product-id",
        type=str,
        metavar="ID",
        help="Link cached view analyses to this product",
    )

    analysis_group.add_argument(
        "--no-grid",
        action="store_true",
        help="Skip the spatial grid section (single image only)",
    )

    analysis_group.add_argument(
        "--parallel",
        action="store_true",
        help="Analyze product views concurrently",
    )

    analysis_group.add_argument(
        "--json",
        action="store_true",
        help="Print results as JSON",
    )

    edit_group = parser.add_argument_group(
        "Edit Targeting", "Use the analyzed grid to target edits (needs --analyze)"
    )

    edit_group.add_argument(
        "--visualize", action="store_true", help="Draw the analyzed grid"
    )

    edit_group.add_argument(
        "--place",
        type=str,
        choices=ELEMENT_TYPES,
        help="Suggest cells for a new element",
    )

    edit_group.add_argument(
        "--edit",
        type=str,
        metavar="INSTRUCTION",
        help="Expand an edit instruction with spatial context",
    )

    score_group = parser.add_argument_group(
        "Scoring", "Compare intended and actually changed cells"
    )

    score_group.add_argument(
        "--score",
        type=split_cells,
        metavar="CELLS",
        help="Comma-separated cells the edit targeted",
    )

    score_group.add_argument(
        "--actual",
        type=split_cells,
        default=[],
        metavar="CELLS",
        help="Comma-separated cells that actually changed",
    )

    cache_group = parser.add_argument_group("Cache", "Analysis cache management")

    cache_group.add_argument(
        "--no-cache",
        action="store_true",
        help="Use an in-process cache instead of Supabase",
    )

    cache_group.add_argument(
        "--cleanup-cache",
        action="store_true",
        help="Delete expired rows from the Supabase cache",
    )

    cache_group.add_argument(
        "--status",
        action="store_true",
        help="Check that the OpenAI API is reachable",
    )

    return parser.parse_args(argv)


def create_cache(no_cache: bool, config: AnalysisConfig):
    """Supabase cache when configured, otherwise an in-process one."""
    from src.loaders.analysis_cache import InMemoryAnalysisCache, SupabaseAnalysisCache

    if no_cache:
        return InMemoryAnalysisCache(config.cache)
    try:
        return SupabaseAnalysisCache(config.cache)
    except ValueError as e:
        console.print(f"[yellow]{e}[/yellow]")
        console.print("[yellow]Continuing with an in-process cache[/yellow]")
        return InMemoryAnalysisCache(config.cache)


def score_edit(intended: list[str], actual: list[str], as_json: bool = False) -> int:
    """Print precision/accuracy for an applied edit."""
    result = score_edit_precision(intended, actual)

    if as_json:
        print(json.dumps(result.to_dict(), indent=2))
        return 0

    console.print("\n[bold cyan]Edit Precision[/bold cyan]\n")
    console.print(f"  Precision: {result.precision}%")
    console.print(f"  Accuracy:  {result.accuracy}%")
    if result.unintended_changes:
        console.print(
            f"  [yellow]Unintended changes: {', '.join(result.unintended_changes)}[/yellow]"
        )
    if result.missed_targets:
        console.print(f"  [yellow]Missed targets: {', '.join(result.missed_targets)}[/yellow]")
    return 0


def report_grid(analysis, args) -> None:
    """Print the grid-based outputs requested on the command line."""
    grid = analysis.spatial_grid
    if grid is None:
        return

    if args.visualize:
        console.print(visualize_grid(grid), markup=False)

    if args.place:
        suggestion = suggest_placement(args.place, grid)
        console.print(f"\n[bold cyan]Placement for {args.place}[/bold cyan]")
        console.print(f"  Primary: {', '.join(suggestion.primary) or '(none)'}")
        for option in suggestion.alternatives:
            console.print(f"  Alternative: {', '.join(option)}")
        console.print(f"  [dim]{suggestion.reasoning}[/dim]")

    if args.edit:
        console.print("\n[bold cyan]Expanded instruction[/bold cyan]")
        console.print(expand_prompt(args.edit, grid), markup=False)
        affected = sorted(identify_affected_squares(args.edit, grid))
        console.print(f"  [dim]Affected squares: {', '.join(affected) or '(none)'}[/dim]")


async def ai_status() -> int:
    """Check OpenAI API availability."""
    console.print("\n[bold cyan]Vision Model Status[/bold cyan]\n")

    from src.ai import OpenAIVisionClient

    try:
        async with OpenAIVisionClient() as client:
            if await client.is_available():
                console.print(f"[green]✓ OpenAI API reachable (model: {client.config.model})[/green]")
                return 0
            console.print("[red]✗ OpenAI API not reachable[/red]")
            return 1
    except ValueError as e:
        console.print(f"[red]{e}[/red]")
        return 1


async def analyze_single(args, config: AnalysisConfig) -> int:
    """Analyze one image and print the requested outputs."""
    from src.ai import ImageAnalyzer, OpenAIVisionClient

    async with OpenAIVisionClient(config.vision) as client:
        analyzer = ImageAnalyzer(
            client, cache=create_cache(args.no_cache, config), config=config
        )
        analysis = await analyzer.analyze_image(
            args.analyze,
            product_name=args.product_name,
            include_spatial_grid=not args.no_grid,
        )

    if analysis is None:
        console.print("[red]Analysis failed[/red]")
        return 1

    if args.json:
        print(json.dumps(analysis.to_dict(), indent=2))
    else:
        console.print(f"\n[bold green]{analysis.product_type or args.product_name}[/bold green]")
        console.print(f"  Colors: {', '.join(analysis.current_colors) or '-'}")
        console.print(f"  Materials: {', '.join(analysis.materials) or '-'}")
        console.print(f"  Style: {analysis.style or '-'}")

    report_grid(analysis, args)
    return 0


async def analyze_views(args, config: AnalysisConfig) -> int:
    """Analyze the front/back/side views of one product."""
    from src.ai import ImageAnalyzer, OpenAIVisionClient

    views = {"front": args.front, "back": args.back, "side": args.side}

    async with OpenAIVisionClient(config.vision) as client:
        analyzer = ImageAnalyzer(
            client, cache=create_cache(args.no_cache, config), config=config
        )
        result = await analyzer.analyze_product_views(
            views,
            product_name=args.product_name,
            product_id=args.product_id,
            parallel=args.parallel,
        )

    if not result.views:
        console.print("[red]No view could be analyzed[/red]")
        return 1

    if args.json:
        print(json.dumps(result.to_dict(), indent=2))
        return 0

    console.print(f"\n[green]✓ Analyzed views: {', '.join(result.views)}[/green]")
    if result.combined_analysis:
        console.print(result.combined_analysis, markup=False)
    return 0


def cleanup_cache(config: AnalysisConfig) -> int:
    """Remove expired analyses from Supabase."""
    from src.loaders.analysis_cache import SupabaseAnalysisCache

    try:
        cache = SupabaseAnalysisCache(config.cache)
    except ValueError as e:
        console.print(f"[red]{e}[/red]")
        return 1
    cache.cleanup_expired()
    return 0


def main(argv=None):
    """Main entry point."""
    args = parse_args(argv)
    config = AnalysisConfig()

    if args.score is not None:
        return score_edit(args.score, args.actual, as_json=args.json)

    if args.status:
        return asyncio.run(ai_status())

    if args.cleanup_cache:
        return cleanup_cache(config)

    try:
        if args.analyze:
            return asyncio.run(analyze_single(args, config))

        if args.front or args.back or args.side:
            return asyncio.run(analyze_views(args, config))

    except KeyboardInterrupt:
        console.print("\n[yellow]Analysis cancelled by user[/yellow]")
        return 130
    except ValueError as e:
        console.print(f"\n[bold red]Configuration error: {e}[/bold red]")
        return 1

    console.print("[yellow]Nothing to do. Run with --help for usage.[/yellow]")
    return 2


if __name__ == "__main__":
    sys.exit(main())
