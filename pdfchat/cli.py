"""
Command-line interface for the PDF chat RAG core.

Provides commands for checking the Ollama server, inspecting chunking, and
asking questions about a document. Nothing is persisted between runs: each
command ingests the document it is given.
"""

import json
from pathlib import Path
from typing import Optional

import click

from .chat.orchestrator import ChatOrchestrator
from .config import ConfigManager, configure_logging
from .errors import RAGError
from .llm.ollama_client import OllamaClient
from .models import ConversationMessage, MessageRole
from .processors.chunker import TextChunker
from .processors.pdf_processor import load_document_text


@click.group()
@click.option('--config', '-c', type=click.Path(exists=True, dir_okay=False), help='JSON configuration file path')
@click.option('--verbose', '-v', is_flag=True, help='Enable debug logging')
@click.pass_context
def cli(ctx, config: Optional[str], verbose: bool):
    """Chat with a PDF using a local Ollama model."""
    ctx.ensure_object(dict)

    config_manager = ConfigManager(config)
    try:
        system_config = config_manager.load_config()
    except ValueError as e:
        raise click.BadParameter(str(e), param_hint='--config')

    if verbose:
        system_config.logging.level = "DEBUG"
    configure_logging(system_config.logging)

    ctx.obj['config'] = system_config
    ctx.obj['config_manager'] = config_manager


@cli.command()
@click.pass_context
def status(ctx):
    """Check that the Ollama server is reachable and a model is installed."""
    config = ctx.obj['config']
    client = OllamaClient(config.ollama)

    click.echo(f"Ollama endpoint: {client.base_url}")
    connection = client.check_connection()

    if not connection.is_running:
        click.echo(f"Status: UNAVAILABLE ({connection.error})", err=True)
        ctx.exit(1)

    click.echo(f"Model: {connection.model}")
    click.echo("Status: OK")


@cli.command()
@click.argument('file_path', type=click.Path(exists=True, dir_okay=False))
@click.option('--chunk-size', type=int, default=None, help='Characters per chunk')
@click.option('--overlap', type=int, default=None, help='Characters shared by consecutive chunks')
@click.option('--preview', default=60, help='Characters of each chunk to show')
@click.pass_context
def chunk(ctx, file_path: str, chunk_size: Optional[int], overlap: Optional[int], preview: int):
    """Show how a document is split into chunks."""
    config = ctx.obj['config']

    try:
        chunker = TextChunker(
            chunk_size=chunk_size or config.processing.chunk_size,
            chunk_overlap=overlap if overlap is not None else config.processing.chunk_overlap
        )
    except ValueError as e:
        raise click.BadParameter(str(e))

    try:
        text = load_document_text(file_path, config.processing)
    except RAGError as e:
        raise click.ClickException(e.message)

    chunks = chunker.create_chunks(text, Path(file_path).stem)
    click.echo(f"{len(text)} characters -> {len(chunks)} chunks")
    for item in chunks:
        snippet = item.text[:preview].replace('\n', ' ')
        click.echo(f"[{item.index}] {item.start}-{item.end}: {snippet}")


@cli.command()
@click.argument('file_path', type=click.Path(exists=True, dir_okay=False))
@click.argument('question')
@click.option('--k', '-k', type=int, default=None, help='Number of context chunks to retrieve')
@click.option('--show-context', is_flag=True, help='Print the retrieved context chunks')
@click.pass_context
def ask(ctx, file_path: str, question: str, k: Optional[int], show_context: bool):
    """Ask one question about a document."""
    config = ctx.obj['config']
    if k is not None:
        config.retrieval.default_k = k

    orchestrator = ChatOrchestrator.from_config(config)

    try:
        result = orchestrator.ingest_file(file_path)
        click.echo(f"Loaded {result.chunks_added} chunks from {file_path}")
        response = orchestrator.query(question, history=[], is_pdf_mode=True)
    except RAGError as e:
        raise click.ClickException(f"{e.status_code.value}: {e.message}")

    click.echo(response.response)

    if show_context:
        click.echo("\n--- Context ---")
        for index, context in enumerate(response.context, 1):
            click.echo(f"[{index}] {context}")


@cli.command()
@click.argument('file_path', required=False, type=click.Path(exists=True, dir_okay=False))
@click.pass_context
def chat(ctx, file_path: Optional[str]):
    """Interactive chat; grounded in FILE_PATH when one is given."""
    config = ctx.obj['config']
    orchestrator = ChatOrchestrator.from_config(config)
    is_pdf_mode = file_path is not None

    if is_pdf_mode:
        try:
            result = orchestrator.ingest_file(file_path)
        except RAGError as e:
            raise click.ClickException(f"{e.status_code.value}: {e.message}")
        click.echo(f"Loaded {result.chunks_added} chunks from {file_path}")

    click.echo("Type your question, or 'exit' to quit.")
    history = []

    while True:
        try:
            message = click.prompt("You", prompt_suffix="> ")
        except click.Abort:
            break

        if message.strip().lower() in ('exit', 'quit'):
            break

        try:
            response = orchestrator.query(message, history=history, is_pdf_mode=is_pdf_mode)
        except RAGError as e:
            click.echo(f"Error ({e.status_code.value}): {e.message}", err=True)
            continue

        click.echo(f"Assistant> {response.response}")
        history.append(ConversationMessage(role=MessageRole.USER, content=message))
        history.append(ConversationMessage(
            role=MessageRole.ASSISTANT,
            content=response.response,
            context=response.context
        ))


@cli.command('config-show')
@click.pass_context
def config_show(ctx):
    """Show current configuration."""
    config_manager = ctx.obj['config_manager']
    click.echo(json.dumps(config_manager.to_dict(), indent=2))


def main():
    """Main CLI entry point."""
    cli()


if __name__ == '__main__':
    main()
