"""
Command-line interface for portfolio-rag.

Commands:
    serve   - Start the FastAPI server
    ingest  - Chunk and embed a content directory into a corpus snapshot
    query   - Build the grounding context for a question
    version - Show version information
"""

import logging
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from portfolio_rag.config import settings

app = typer.Typer(
    name="portfolio-rag",
    help="Retrieval pipeline for a portfolio site's AI assistant",
    add_completion=False,
)
console = Console()


@app.callback()
def main(
    log_level: str = typer.Option(settings.log_level, "--log-level", help="Logging level"),
) -> None:
    """Configure logging for every command."""
    logging.basicConfig(
        level=log_level.upper(),
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=True, show_path=False)],
        force=True,
    )


@app.command()
def serve(
    host: str = typer.Option(settings.api_host, help="Host to bind"),
    port: int = typer.Option(settings.api_port, help="Port to bind"),
    reload: bool = typer.Option(False, help="Enable auto-reload"),
) -> None:
    """Start the FastAPI server."""
    import uvicorn

    console.print(f"[green]Starting portfolio-rag server on {host}:{port}[/green]")

    uvicorn.run(
        "portfolio_rag.api.main:app",
        host=host,
        port=port,
        reload=reload,
        workers=1,  # Corpus lives in process memory
    )


@app.command()
def ingest(
    data_dir: Path = typer.Argument(..., help="Directory with markdown/text content"),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Corpus snapshot file"),
    source_type: Optional[str] = typer.Option(
        None, "--source-type", "-t", help="blog, project, page or custom"
    ),
    base_url: Optional[str] = typer.Option(None, help="Base URL used to build source URLs"),
    chunk_size: Optional[int] = typer.Option(None, help="Maximum chunk length in characters"),
    chunk_overlap: Optional[int] = typer.Option(None, help="Characters shared by consecutive chunks"),
    batch_size: Optional[int] = typer.Option(None, help="Embedding batch size"),
    force: bool = typer.Option(False, "--force", "-f", help="Overwrite an existing snapshot"),
) -> None:
    """Chunk and embed every document in a directory into a corpus snapshot."""
    from portfolio_rag.retrieval.corpus import CorpusSnapshot
    from portfolio_rag.retrieval.data_ingestion import load_documents, validate_data_directory
    from portfolio_rag.retrieval.errors import RetrievalError
    from portfolio_rag.retrieval.pipeline import ingest_documents

    output_path = output or settings.corpus_path

    is_valid, message = validate_data_directory(data_dir)
    if not is_valid:
        console.print(f"[red]{message}[/red]")
        raise typer.Exit(1)

    if output_path.exists() and not force:
        console.print(f"[yellow]Corpus snapshot already exists: {output_path}[/yellow]")
        console.print("Use --force to rebuild.")
        return

    try:
        documents = load_documents(data_dir, source_type=source_type, base_url=base_url)
    except ValueError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1)

    console.print(f"[blue]{message}; embedding {len(documents)} documents...[/blue]")

    try:
        with console.status("[bold green]Embedding..."):
            embedded = ingest_documents(
                documents,
                chunk_size=chunk_size,
                chunk_overlap=chunk_overlap,
                batch_size=batch_size,
            )
    except RetrievalError as e:
        console.print(f"[red]Ingestion failed: {e}[/red]")
        raise typer.Exit(1)

    snapshot = CorpusSnapshot.from_embedded_chunks(embedded)
    snapshot.save(output_path)

    console.print("[bold green]✓ Ingestion complete![/bold green]")
    console.print(f"  Documents: {len(documents)}")
    console.print(f"  Chunks: {len(snapshot)}")
    console.print(f"  Dimension: {snapshot.dimension}")
    console.print(f"  Output: {output_path}")


@app.command()
def query(
    question: str = typer.Argument(..., help="Question to ground"),
    corpus: Optional[Path] = typer.Option(None, "--corpus", "-c", help="Corpus snapshot file"),
    top_k: Optional[int] = typer.Option(None, help="Maximum chunks to retrieve"),
    min_score: Optional[float] = typer.Option(None, help="Minimum cosine similarity"),
    max_context_chars: Optional[int] = typer.Option(None, help="Context budget in characters"),
    expand: Optional[list[str]] = typer.Option(
        None, "--expand", "-e", help="Extra phrasing of the question (repeatable)"
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Print the full context"),
) -> None:
    """Retrieve and assemble the context for a question."""
    from portfolio_rag.retrieval.context import chunks_to_sources
    from portfolio_rag.retrieval.corpus import CorpusSnapshot
    from portfolio_rag.retrieval.errors import RetrievalError
    from portfolio_rag.retrieval.pipeline import query_context

    try:
        snapshot = CorpusSnapshot.load(corpus)
    except (FileNotFoundError, ValueError) as e:
        console.print(f"[red]{e}[/red]")
        console.print("Run `portfolio-rag ingest` first.")
        raise typer.Exit(1)

    console.print(f"[blue]Question:[/blue] {question}\n")

    try:
        with console.status("[bold green]Retrieving..."):
            result = query_context(
                question,
                snapshot.items,
                top_k=top_k,
                min_score=min_score,
                max_context_chars=max_context_chars,
                expansions=expand or [],
            )
    except RetrievalError as e:
        console.print(f"[red]Retrieval failed: {e}[/red]")
        raise typer.Exit(1)

    if not result.used_chunks:
        console.print("[yellow]No chunks matched; the context is empty.[/yellow]")
        return

    table = Table(title="Sources")
    table.add_column("Score", style="green", justify="right")
    table.add_column("Title", style="cyan")
    table.add_column("Chunk", justify="right")
    table.add_column("Preview")

    for source in chunks_to_sources(result.used_chunks):
        score = f"{source.score:.4f}" if source.score is not None else "-"
        table.add_row(score, source.title, str(source.chunk_index), source.content_preview)

    console.print(table)
    console.print(f"[dim]Context: {len(result.context):,} chars from {len(result.used_chunks)} chunks[/dim]")

    if verbose:
        console.print()
        console.print(result.context, markup=False, highlight=False)


@app.command()
def version() -> None:
    """Show version information."""
    from portfolio_rag import __version__

    console.print(f"portfolio-rag v{__version__}")


if __name__ == "__main__":
    app()
