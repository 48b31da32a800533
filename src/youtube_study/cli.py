"""
Command-line interface for youtube-study.

Runs the HTTP service and offers operator tools: configuration display and
validation, provider diagnostics, one-off generation and speech preparation.
"""

import asyncio
import sys
import logging
import time
from pathlib import Path
from typing import Optional

import click
from rich.console import Console
from rich.table import Table
from rich.panel import Panel
from rich.logging import RichHandler
from rich.markdown import Markdown

from .config import Configuration, init_config
from .models import GENERATED_CONTENT_TYPES, ContentType, GenerationRequest, VideoReference
from .services import ServiceContainer
from .speech import estimate_duration_seconds, prepare_for_speech
from .url_parser import validate_youtube_url


# Initialize rich console for beautiful output
console = Console()


def setup_cli_logging(log_level: str, log_file: Optional[Path] = None, verbose: bool = False):
    """
    Set up logging for CLI with rich formatting and optional file output.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: Optional path to log file
        verbose: Enable verbose console output
    """
    logging.getLogger().handlers.clear()

    console_handler = RichHandler(
        console=console,
        show_time=True,
        show_path=verbose,
        markup=False,
        rich_tracebacks=True
    )
    console_handler.setLevel(logging.DEBUG if verbose else getattr(logging, log_level))

    logging.basicConfig(
        level=logging.DEBUG,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[console_handler]
    )

    if log_file:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file)
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
        ))
        logging.getLogger().addHandler(file_handler)

    # Provider SDKs are chatty at DEBUG
    for noisy in ("httpx", "httpcore", "googleapiclient.discovery_cache", "aiosqlite"):
        logging.getLogger(noisy).setLevel(logging.WARNING)


def display_config_table(config: Configuration):
    """Display configuration in a formatted table."""
    table = Table(title="youtube-study Configuration")
    table.add_column("Setting", style="cyan", no_wrap=True)
    table.add_column("Value", style="magenta")
    table.add_column("Description", style="green")

    descriptions = {
        name: field.description or ''
        for name, field in Configuration.model_fields.items()
    }

    for key, value in config.to_dict().items():
        if isinstance(value, list):
            value = ', '.join(str(v) for v in value)
        table.add_row(key, str(value), descriptions.get(key, ''))

    console.print(table)


def display_key_status(config: Configuration) -> bool:
    """Print which credentials are present; True when the LLM key is configured."""
    labels = {
        'hasOpenAIKey': 'OPENAI_API_KEY',
        'hasYouTubeKey': 'YOUTUBE_API_KEY',
        'hasDatabaseUrl': 'DATABASE_URL',
        'hasIdentityKeys': 'IDENTITY_PROVIDER_SECRET',
    }
    for flag, present in config.get_key_status().items():
        if present:
            console.print(f"[green]✓[/green] {labels[flag]} is configured")
        else:
            console.print(f"[yellow]⚠[/yellow] {labels[flag]} is not set")
    return config.has_openai_key


def init_config_if_needed(ctx) -> Configuration:
    """Initialize configuration once per invocation."""
    if 'config' in ctx.obj:
        return ctx.obj['config']

    config_file = ctx.obj.get('config_file')
    debug = ctx.obj.get('debug', False)
    verbose = ctx.obj.get('verbose', False)

    try:
        config = init_config(config_file)
    except Exception as e:
        console.print(f"[red]✗[/red] Configuration error: {str(e)}")
        if debug:
            console.print_exception()
        sys.exit(1)

    if debug:
        config.debug = True
        config.log_level = 'DEBUG'

    setup_cli_logging(config.log_level, ctx.obj.get('log_file') or config.log_file, verbose)
    ctx.obj['config'] = config

    if verbose:
        console.print("[green]✓[/green] Configuration loaded successfully")
        if config_file:
            console.print(f"[blue]ℹ[/blue] Using config file: {config_file}")

    return config


@click.group()
@click.option('--config-file', '-c', type=click.Path(exists=True, path_type=Path),
              help='Path to configuration file (.env format)')
@click.option('--verbose', '-v', is_flag=True, help='Enable verbose output')
@click.option('--debug', is_flag=True, help='Enable debug mode')
@click.option('--log-file', type=click.Path(path_type=Path),
              help='Path to log file (overrides config)')
@click.pass_context
def main(ctx, config_file: Optional[Path], verbose: bool, debug: bool, log_file: Optional[Path]):
    """
    youtube-study - study guides and briefing documents from YouTube videos.

    Serves the HTTP API and provides operator tools for checking providers and
    generating content from the command line.
    """
    ctx.ensure_object(dict)
    ctx.obj['verbose'] = verbose
    ctx.obj['debug'] = debug
    ctx.obj['config_file'] = config_file
    ctx.obj['log_file'] = log_file


@main.command()
@click.option('--host', type=str, help='Bind address (overrides config)')
@click.option('--port', type=int, help='Bind port (overrides config)')
@click.pass_context
def serve(ctx, host: Optional[str], port: Optional[int]):
    """Run the HTTP API with uvicorn."""
    import uvicorn
    from .api import create_app

    config = init_config_if_needed(ctx)
    host = host or config.host
    port = port or config.port

    console.print(Panel.fit(f"🎓 youtube-study API on http://{host}:{port}", style="bold green"))
    if not config.has_openai_key:
        console.print("[yellow]⚠[/yellow] OPENAI_API_KEY not set: generation will fall back to templated content")

    uvicorn.run(create_app(config), host=host, port=port, log_config=None,
                log_level=config.log_level.lower())


@main.command()
@click.pass_context
def config(ctx):
    """Display current configuration settings."""
    config: Configuration = init_config_if_needed(ctx)

    console.print(Panel.fit("⚙️  Current Configuration", style="bold cyan"))
    display_config_table(config)
    display_key_status(config)


@main.command()
@click.pass_context
def validate(ctx):
    """Validate configuration and check that required credentials are present."""
    config: Configuration = init_config_if_needed(ctx)
    verbose = ctx.obj['verbose']

    console.print(Panel.fit("🔍 Validating Configuration", style="bold yellow"))
    console.print("[green]✓[/green] Configuration validation passed")
    if verbose:
        display_config_table(config)

    if display_key_status(config):
        console.print(Panel.fit("✅ Ready to serve", style="bold green"))
    else:
        console.print(Panel.fit("❌ OPENAI_API_KEY is required for AI generation", style="bold red"))
        sys.exit(1)


@main.command()
@click.option('--transcript', 'transcript_url', type=str, help='Fetch a transcript for this video URL')
@click.option('--metadata', 'metadata_url', type=str, help='Fetch metadata for this video URL')
@click.option('--llm', is_flag=True, help='Send a short prompt to the LLM provider')
@click.pass_context
def test_apis(ctx, transcript_url: Optional[str], metadata_url: Optional[str], llm: bool):
    """
    Test provider connections with real API calls.

    Use this to troubleshoot API keys, captions and network connectivity.
    """
    config: Configuration = init_config_if_needed(ctx)
    verbose = ctx.obj['verbose']
    services = ServiceContainer.from_config(config)

    console.print(Panel.fit("🔌 Testing API Connections", style="bold blue"))

    if not (transcript_url or metadata_url or llm):
        console.print("[yellow]⚠[/yellow] Nothing to test. Pass --transcript URL, --metadata URL or --llm")
        sys.exit(2)

    success_count = 0
    total_tests = 0

    if transcript_url:
        total_tests += 1
        console.print("[blue]ℹ[/blue] Testing transcript provider...")
        try:
            video_id = validate_youtube_url(transcript_url)
            start_time = time.time()
            result = asyncio.run(services.transcripts.fetch_raw_transcript(video_id))
            console.print(f"[green]✓[/green] Transcript fetched ({time.time() - start_time:.2f}s): "
                          f"{result.length_chars} characters, {result.segment_count} segments")
            if verbose:
                console.print(f"  - Preview: {result.text[:200]}...")
            success_count += 1
        except Exception as e:
            console.print(f"[red]✗[/red] Transcript test failed: {str(e)}")
            if verbose:
                console.print_exception()

    if metadata_url:
        total_tests += 1
        console.print("[blue]ℹ[/blue] Testing YouTube Data API...")
        try:
            video_id = validate_youtube_url(metadata_url)
            start_time = time.time()
            metadata = asyncio.run(services.youtube.fetch_metadata(video_id))
            console.print(f"[green]✓[/green] YouTube API test passed ({time.time() - start_time:.2f}s): "
                          f"'{metadata.title}' by {metadata.channel_title}")
            success_count += 1
        except Exception as e:
            console.print(f"[red]✗[/red] YouTube API test failed: {str(e)}")
            if verbose:
                console.print_exception()

    if llm:
        total_tests += 1
        console.print("[blue]ℹ[/blue] Testing OpenAI API...")
        try:
            start_time = time.time()
            reply = asyncio.run(services.generator.ping())
            if reply.strip():
                console.print(f"[green]✓[/green] OpenAI API test passed ({time.time() - start_time:.2f}s)")
                if verbose:
                    console.print(f"  - Test response: {reply[:100]}...")
                success_count += 1
            else:
                console.print("[red]✗[/red] OpenAI API responded but returned empty response")
        except Exception as e:
            console.print(f"[red]✗[/red] OpenAI API test failed: {str(e)}")
            if verbose:
                console.print_exception()

    console.print(f"\n[bold]Test Results:[/bold] {success_count}/{total_tests} APIs passed")

    if success_count == total_tests:
        console.print(Panel.fit("✅ All API tests passed!", style="bold green"))
    else:
        console.print(Panel.fit("❌ Some API tests failed!", style="bold red"))
        sys.exit(1)


@main.command()
@click.argument('url')
@click.option('--type', 'content_type', type=click.Choice([t.value for t in GENERATED_CONTENT_TYPES]),
              default=ContentType.STUDY_GUIDE.value, show_default=True, help='What to generate')
@click.option('--output-file', '-o', type=click.Path(path_type=Path),
              help='Write the markdown here instead of printing it')
@click.pass_context
def generate(ctx, url: str, content_type: str, output_file: Optional[Path]):
    """Generate a study guide or briefing document for URL using the fallback chain."""
    config: Configuration = init_config_if_needed(ctx)

    try:
        video_id = validate_youtube_url(url)
    except Exception as e:
        console.print(f"[red]✗[/red] {e}")
        sys.exit(1)

    services = ServiceContainer.from_config(config)

    request = GenerationRequest(
        video_ref=VideoReference(url=url.strip(), id=video_id),
        content_type=ContentType(content_type),
    )

    try:
        with console.status(f"Generating {content_type} for {video_id}..."):
            result = asyncio.run(services.chain.run(request))
    except Exception as e:
        console.print(f"[red]✗[/red] Generation failed: {e}")
        suggestion = getattr(e, 'suggestion', None)
        if suggestion:
            console.print(f"[blue]ℹ[/blue] {suggestion}")
        sys.exit(1)

    artifact = result.artifact
    paths = ' → '.join(path.value for path in result.attempted_paths)
    console.print(f"[green]✓[/green] Generated via {artifact.generator_path.value} path ({paths}), "
                  f"transcript {artifact.transcript_length_chars} characters")

    if output_file:
        output_file.parent.mkdir(parents=True, exist_ok=True)
        output_file.write_text(artifact.content, encoding='utf-8')
        console.print(f"[green]✓[/green] Saved to {output_file}")
    else:
        console.print(Markdown(artifact.content))


@main.command()
@click.argument('file', type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option('--speed', type=click.FloatRange(min=0.1, max=4.0), default=1.0, show_default=True,
              help='Speech rate multiplier')
@click.option('--keep-special-characters', is_flag=True, help='Skip the special-character filter')
def speech(file: Path, speed: float, keep_special_characters: bool):
    """Prepare a markdown FILE for text-to-speech and estimate its duration."""
    text = prepare_for_speech(file.read_text(encoding='utf-8'),
                              strip_special_characters=not keep_special_characters)
    duration = estimate_duration_seconds(text, speed)

    console.print(text)
    console.print(f"\n[bold]Estimated duration:[/bold] {duration // 60}m {duration % 60}s at {speed}x "
                  f"({len(text.split())} words)")


if __name__ == '__main__':
    main()
