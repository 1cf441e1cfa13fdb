"""
Command-line interface for pdfunite-tree.
"""

import logging
import os
import sys

import click
from rich.console import Console
from rich.progress import BarColumn, Progress, SpinnerColumn, TaskProgressColumn, TextColumn
from rich.table import Table
from rich.tree import Tree

from pdfunite_tree import __version__
from pdfunite_tree.backends import PypdfCodec
from pdfunite_tree.exceptions import PdfTreeError, RebaseCollision
from pdfunite_tree.external import qpdf_validator, xournalpp_converter
from pdfunite_tree.merger import MergeOptions, merge_directory
from pdfunite_tree.policy import FeatureAction, FeaturePolicy, Ordering
from pdfunite_tree.samples import index_generator, write_basic_document
from pdfunite_tree.splitter import default_split_dir, split_document, write_parts
from pdfunite_tree.utils import format_file_size, get_logger
from pdfunite_tree.walker import DEFAULT_MAX_DEPTH, WalkOptions

console = Console()

ACTION_STYLES = {
    FeatureAction.ACCEPT: "green",
    FeatureAction.WARN: "yellow",
    FeatureAction.REJECT: "bold red",
}


def policy_options(command):
    """Attach the catalog feature policy options to ``command``."""

    command = click.option(
        '--strict',
        is_flag=True,
        help='Report accepted catalog entries as warnings'
    )(command)
    for name, action in (('reject', 'rejected'), ('warn', 'reported as a warning'), ('accept', 'accepted')):
        command = click.option(
            f'--{name}', f'{name}_keys',
            multiple=True,
            metavar='KEY',
            help=f'Catalog entry to be {action} (repeatable)'
        )(command)
    return command


def build_policy(accept_keys, warn_keys, reject_keys, strict) -> FeaturePolicy:
    return FeaturePolicy().with_rules(
        accept=accept_keys,
        warn=warn_keys,
        reject=reject_keys,
        strict=strict,
    )


@click.group()
@click.version_option(version=__version__)
@click.option('--verbose', '-v', is_flag=True, help='Log progress details')
def cli(verbose):
    """
    pdfunite-tree - Merge a directory tree of PDFs into one bookmarked PDF.
    """
    get_logger("pdfunite_tree").setLevel(logging.DEBUG if verbose else logging.WARNING)


@cli.command(name="merge")
@click.argument('input_dir', type=click.Path(exists=True, file_okay=False))
@click.option(
    '--output', '-o',
    default=None,
    help='Output PDF file [default: <INPUT_DIR>-united.pdf]',
    type=click.Path(dir_okay=False)
)
@click.option(
    '--max-depth',
    default=DEFAULT_MAX_DEPTH,
    show_default=True,
    help='Deepest directory level to merge',
    type=click.IntRange(min=0)
)
@click.option(
    '--with-outlines/--no-outlines',
    default=True,
    show_default=True,
    help='Add bookmarks mirroring the directory tree'
)
@click.option(
    '--structural-directories',
    is_flag=True,
    help='Directory bookmarks only group their children and do not jump to a page'
)
@click.option(
    '--ordering',
    default=Ordering.CASE_INSENSITIVE.value,
    show_default=True,
    help='Sort order of the entries of each directory',
    type=click.Choice([ordering.value for ordering in Ordering])
)
@policy_options
@click.option(
    '--convert-xopp',
    is_flag=True,
    help='Convert .xopp notebooks with xournalpp'
)
@click.option(
    '--qpdf-check',
    is_flag=True,
    help='Run qpdf --check on every document before merging'
)
@click.option(
    '--index-title',
    default=None,
    help='Prepend an index page with this bookmark title',
    type=str
)
@click.option(
    '--workers',
    default=1,
    show_default=True,
    help='Number of threads used to validate documents',
    type=click.IntRange(min=1)
)
@click.option('--overwrite', is_flag=True, help='Replace an existing output file')
def merge(input_dir, output, max_depth, with_outlines, structural_directories, ordering,
          accept_keys, warn_keys, reject_keys, strict, convert_xopp, qpdf_check, index_title,
          workers, overwrite):
    """
    Merge the PDFs below INPUT_DIR into one PDF.

    Examples:

        pdfunite-tree merge lectures/

        pdfunite-tree merge lectures/ -o course.pdf --max-depth 2

        pdfunite-tree merge lectures/ --warn /OpenAction --ordering natural
    """
    try:
        converter = None
        if convert_xopp:
            converter = xournalpp_converter()
            if converter is None:
                console.print("[yellow]⚠ xournalpp not found; .xopp files will be skipped[/yellow]")

        validators = []
        if qpdf_check:
            validator = qpdf_validator()
            if validator is None:
                console.print("[yellow]⚠ qpdf not found; skipping qpdf --check[/yellow]")
            else:
                validators.append(validator)

        walk_options = WalkOptions(
            max_depth=max_depth,
            policy=build_policy(accept_keys, warn_keys, reject_keys, strict),
            ordering=Ordering(ordering),
            xopp_converter=converter,
            validators=tuple(validators),
            workers=workers,
        )
        merge_options = MergeOptions(
            with_outlines=with_outlines,
            navigable_directories=not structural_directories,
            index_title=index_title,
        )

        console.print(f"\n[bold cyan]Merging {input_dir}...[/bold cyan]")
        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            console=console
        ) as progress:
            task = progress.add_task("Validating and merging...", total=None)
            run = merge_directory(
                input_dir,
                output,
                walk_options=walk_options,
                merge_options=merge_options,
                index_generator=index_generator(input_dir, title=index_title) if index_title else None,
                overwrite=overwrite,
            )
            progress.update(task, completed=True)

    except RebaseCollision as e:
        console.print(f"\n[bold red]✗ Internal error:[/bold red] {e}")
        sys.exit(1)
    except (PdfTreeError, FileExistsError, ValueError, OSError) as e:
        console.print(f"\n[bold red]✗ Error:[/bold red] {e}")
        sys.exit(1)

    console.print()
    console.print(run.report.render())
    console.print(f"\n[dim]{run.report.summary()}[/dim]")

    if run.output is not None:
        size = os.path.getsize(run.output)
        console.print(
            f"[bold green]✓ Wrote {len(run.result.store.page_refs())} pages to {run.output}[/bold green] "
            f"[dim]({format_file_size(size)})[/dim]"
        )
    if run.report.has_errors:
        console.print("[bold red]✗ Some entries could not be merged[/bold red]")
        sys.exit(run.exit_code)


@cli.command(name="split")
@click.argument('input_pdf', type=click.Path(exists=True, dir_okay=False))
@click.option(
    '--output-dir', '-o',
    default=None,
    help='Output directory [default: <INPUT_PDF stem>-split]',
    type=click.Path(file_okay=False)
)
@click.option(
    '--workers',
    default=1,
    show_default=True,
    help='Number of threads used to extract parts',
    type=click.IntRange(min=1)
)
@click.option('--overwrite', is_flag=True, help='Replace existing output files')
def split(input_pdf, output_dir, workers, overwrite):
    """
    Split a merged PDF into one file per bookmark leaf.

    Example:

        pdfunite-tree split course.pdf -o lectures/
    """
    try:
        codec = PypdfCodec()
        with open(input_pdf, 'rb') as handle:
            store = codec.load(handle.read(), source=input_pdf)
        parts = split_document(store, workers=workers)
        target = output_dir or default_split_dir(input_pdf)

        console.print(f"\n[bold cyan]Splitting into {len(parts)} files...[/bold cyan]")
        with Progress(
            TextColumn("[progress.description]{task.description}"),
            BarColumn(),
            TaskProgressColumn(),
            console=console
        ) as progress:
            task = progress.add_task("Writing parts", total=len(parts))

            def update_progress(current, total):
                progress.update(task, completed=current)

            created_files = write_parts(
                parts, target, codec=codec, overwrite=overwrite, progress_callback=update_progress
            )

        console.print(f"\n[bold green]✓ Successfully split into {len(created_files)} files[/bold green]")
        console.print(f"[dim]Output directory: {os.path.abspath(target)}[/dim]")

        table = Table(show_header=True)
        table.add_column("File", style="cyan")
        table.add_column("Pages", style="green", justify="right")
        for part, path in zip(parts, created_files):
            table.add_row(os.path.relpath(path, target), f"{part.start + 1}-{part.stop}")
        console.print(table)

    except (PdfTreeError, FileExistsError, OSError) as e:
        console.print(f"\n[bold red]✗ Error:[/bold red] {e}")
        sys.exit(1)


@cli.command(name="catalog")
@click.argument('input_pdf', type=click.Path(exists=True, dir_okay=False))
@policy_options
def show_catalog(input_pdf, accept_keys, warn_keys, reject_keys, strict):
    """
    Show the catalog entries of a PDF and how a merge treats them.

    Example:

        pdfunite-tree catalog input.pdf --warn /AcroForm
    """
    try:
        with open(input_pdf, 'rb') as handle:
            store = PypdfCodec().load(handle.read(), source=input_pdf)
        catalog = store.catalog()
        policy = build_policy(accept_keys, warn_keys, reject_keys, strict)

        tree = Tree(f"[bold]{os.path.basename(input_pdf)}[/bold] [dim](PDF {store.version})[/dim]")
        for key, action in policy.evaluate(str(key) for key in catalog.keys()):
            style = ACTION_STYLES[action]
            node = tree.add(f"{key} [{style}]{action.value}[/{style}]")
            value = store.follow(catalog.get(key))
            if isinstance(value, dict):
                for child in sorted(str(child) for child in value.keys()):
                    node.add(f"[dim]{child}[/dim]")
        console.print()
        console.print(tree)
        console.print()

    except PdfTreeError as e:
        console.print(f"\n[bold red]✗ Error:[/bold red] {e}")
        sys.exit(1)


@cli.command(name="generate")
@click.argument('output_pdf', type=click.Path(dir_okay=False))
@click.option(
    '--pages', '-n',
    required=True,
    help='Number of pages',
    type=click.IntRange(min=1)
)
@click.option(
    '--name',
    default=None,
    help='Text printed on every page [default: file name]',
    type=str
)
@click.option('--overwrite', is_flag=True, help='Replace an existing file')
def generate(output_pdf, pages, name, overwrite):
    """
    Write a simple PDF whose pages read "Page i of n".

    Example:

        pdfunite-tree generate sample.pdf -n 3
    """
    if os.path.exists(output_pdf) and not overwrite:
        console.print(f"[bold red]✗ Error:[/bold red] Output file already exists: {output_pdf}")
        sys.exit(1)
    path = write_basic_document(output_pdf, pages, name=name)
    console.print(f"[bold green]✓ Wrote {pages} pages to {path}[/bold green]")


if __name__ == '__main__':
    cli()
