#!/usr/bin/env python3
"""Main CLI entry point for Page Picker using Typer.

Commands load pages through the capture pipeline, inspect captured documents
and run the interactive picker in a real browser.
"""

import asyncio
import json
import logging
from enum import IntEnum
from pathlib import Path
from typing import Optional

import typer
import yaml
from typing_extensions import Annotated

from .. import __version__
from ..bridge import BrowserFactory, MessageRouter, SandboxHost
from ..capture import HttpCaptureBackend, PageLoader, sanitize
from ..capture.config import ConfigManager, PagePickerConfig, get_config
from ..errors import InvalidSelectorError, PagePickerError
from ..models.selection import ElementDescriptor
from ..selectors import preview_selector

logger = logging.getLogger(__name__)


class ExitCode(IntEnum):
    """CLI exit codes."""
    SUCCESS = 0
    LOAD_FAILED = 1
    NOTHING_SELECTED = 2
    CONFIG_ERROR = 3
    RUNTIME_ERROR = 4
    TIMEOUT_ERROR = 5


app = typer.Typer(
    name="pagepicker",
    help="Page Picker - capture pages and pick elements for scraper rules",
    add_completion=False,
    rich_markup_mode="rich"
)


def configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def load_settings(config_file: Optional[Path]) -> PagePickerConfig:
    try:
        if config_file is not None:
            if not config_file.exists():
                typer.echo(f"❌ Configuration file not found: {config_file}", err=True)
                raise typer.Exit(code=ExitCode.CONFIG_ERROR.value)
            return ConfigManager(config_file).load_config()
        return get_config().config
    except (ValueError, yaml.YAMLError) as e:
        typer.echo(f"❌ Configuration error: {e}", err=True)
        raise typer.Exit(code=ExitCode.CONFIG_ERROR.value)


def create_backend(config: PagePickerConfig, cache_dir: Path) -> HttpCaptureBackend:
    return HttpCaptureBackend(
        base_dir=cache_dir,
        saved_pages_root=config.capture.saved_pages_root,
        timeout=config.http.timeout_s,
        user_agent=config.http.user_agent,
    )


def write_output(text: str, out: Optional[Path]) -> None:
    if out is None:
        typer.echo(text.rstrip("\n"))
        return
    out.parent.mkdir(parents=True, exist_ok=True)
    out.write_text(text, encoding="utf-8")


@app.callback()
def main():
    """
    Page Picker - visual scraper builder core.

    Captures a live page as a self-contained, script-free document, renders
    it in a sandbox and reports the CSS selectors of the elements you pick.
    """
    pass


@app.command(name="version")
def show_version():
    """Show version information."""
    typer.echo(f"Page Picker v{__version__}")


@app.command()
def capture(
    url: Annotated[str, typer.Argument(help="Page URL to capture")],

    out: Annotated[
        Optional[Path],
        typer.Option("--out", "-o", help="Write the final HTML here instead of stdout")
    ] = None,

    force_refresh: Annotated[
        bool,
        typer.Option("--force-refresh", "-f", help="Ignore the page cache")
    ] = False,

    no_inline: Annotated[
        bool,
        typer.Option("--no-inline", help="Skip stylesheet and image inlining")
    ] = False,

    cache_dir: Annotated[
        Path,
        typer.Option("--cache-dir", help="Directory holding saved_pages")
    ] = Path("."),

    config_file: Annotated[
        Optional[Path],
        typer.Option("--config", "-c", help="Path to configuration YAML")
    ] = None,

    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Verbose logging")
    ] = False,
):
    """
    Capture a page: fetch, sanitize, instrument and inline its resources.
    """
    configure_logging(verbose)
    config = load_settings(config_file)
    if no_inline:
        config = config.model_copy(
            update={"capture": config.capture.model_copy(update={"inline_resources": False})}
        )

    async def run():
        async with create_backend(config, cache_dir) as backend:
            return await PageLoader(backend, config).load(url, force_refresh=force_refresh)

    try:
        result = asyncio.run(run())
    except KeyboardInterrupt:
        typer.echo("❌ Operation interrupted by user", err=True)
        raise typer.Exit(code=ExitCode.RUNTIME_ERROR.value)

    if not result.is_success:
        typer.echo(f"❌ {result.error}", err=True)
        raise typer.Exit(code=ExitCode.LOAD_FAILED.value)

    write_output(result.html, out)
    typer.echo(
        f"✅ Captured {result.url} in {result.load_time_ms:.0f}ms: "
        f"{result.document.size_bytes} bytes, "
        f"{sum(1 for ref in result.resources if ref.inlined)}/{len(result.resources)} resources inlined"
        + (f", folder {result.resource_folder}" if result.resource_folder else ""),
        err=True,
    )


@app.command(name="sanitize")
def sanitize_file(
    html_file: Annotated[Path, typer.Argument(help="HTML file to sanitize")],

    out: Annotated[
        Optional[Path],
        typer.Option("--out", "-o", help="Write the result here instead of stdout")
    ] = None,
):
    """
    Strip scripts, inline handlers and javascript: URLs from an HTML file.
    """
    if not html_file.exists():
        typer.echo(f"❌ File not found: {html_file}", err=True)
        raise typer.Exit(code=ExitCode.CONFIG_ERROR.value)

    html = html_file.read_text(encoding="utf-8", errors="replace")
    write_output(sanitize(html), out)


@app.command()
def preview(
    html_file: Annotated[Path, typer.Argument(help="Captured HTML file")],
    selector: Annotated[str, typer.Argument(help="CSS selector to evaluate")],

    limit: Annotated[
        int,
        typer.Option("--limit", "-n", help="Maximum number of matches to show")
    ] = 20,

    as_json: Annotated[
        bool,
        typer.Option("--json", help="Print the preview as JSON")
    ] = False,
):
    """
    Show what a selector matches in a captured document.
    """
    if not html_file.exists():
        typer.echo(f"❌ File not found: {html_file}", err=True)
        raise typer.Exit(code=ExitCode.CONFIG_ERROR.value)

    html = html_file.read_text(encoding="utf-8", errors="replace")
    try:
        result = preview_selector(html, selector, limit=limit)
    except InvalidSelectorError as e:
        typer.echo(f"❌ {e}", err=True)
        raise typer.Exit(code=ExitCode.CONFIG_ERROR.value)

    if as_json:
        typer.echo(result.model_dump_json(indent=2))
        return

    typer.echo(f"{result.selector}: {result.matches} match(es)")
    for index, match in enumerate(result.results, start=1):
        typer.echo(f"  {index}. {match.text[:80]}")


async def pick_element(
    url: str,
    config: PagePickerConfig,
    cache_dir: Path,
    select: Optional[str],
    timeout_s: float,
) -> Optional[ElementDescriptor]:
    """Capture ``url``, show it in the sandbox and wait for one selection."""
    async with create_backend(config, cache_dir) as backend:
        result = await PageLoader(backend, config).load(url)
    if not result.is_success:
        raise PagePickerError(result.error or f"Failed to load {url}")

    selections: "asyncio.Queue[ElementDescriptor]" = asyncio.Queue()
    router = MessageRouter(base_url=result.url, on_element_selected=selections.put_nowait)

    async with BrowserFactory(config.browser) as factory:
        async with factory.page() as page:
            host = SandboxHost(page, router)
            await host.setup()
            await host.show(result.document)
            if not await host.wait_until_ready(timeout_s):
                raise PagePickerError("Sandbox did not announce itself")

            await router.enable()
            if select:
                # Control messages are delivered asynchronously
                await asyncio.sleep(0.2)
                await host.click(select)
            else:
                typer.echo("🖱️  Click an element in the browser window to select it", err=True)

            try:
                return await asyncio.wait_for(selections.get(), timeout=timeout_s)
            except asyncio.TimeoutError:
                return None


@app.command()
def pick(
    url: Annotated[str, typer.Argument(help="Page URL to pick an element from")],

    select: Annotated[
        Optional[str],
        typer.Option("--select", "-s", help="Click this selector instead of waiting for a manual click")
    ] = None,

    headful: Annotated[
        bool,
        typer.Option("--headful", help="Show the browser window")
    ] = False,

    timeout: Annotated[
        float,
        typer.Option("--timeout", "-t", help="Seconds to wait for readiness and for a selection")
    ] = 120.0,

    cache_dir: Annotated[
        Path,
        typer.Option("--cache-dir", help="Directory holding saved_pages")
    ] = Path("."),

    config_file: Annotated[
        Optional[Path],
        typer.Option("--config", "-c", help="Path to configuration YAML")
    ] = None,

    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Verbose logging")
    ] = False,
):
    """
    Capture a page, render it in a sandboxed browser frame and print the
    descriptor of the element you click.
    """
    configure_logging(verbose)
    config = load_settings(config_file)
    if headful or not select:
        config = config.model_copy(
            update={"browser": config.browser.model_copy(update={"headless": False})}
        )

    try:
        descriptor = asyncio.run(pick_element(url, config, cache_dir, select, timeout))
    except KeyboardInterrupt:
        typer.echo("❌ Operation interrupted by user", err=True)
        raise typer.Exit(code=ExitCode.RUNTIME_ERROR.value)
    except PagePickerError as e:
        typer.echo(f"❌ {e}", err=True)
        raise typer.Exit(code=ExitCode.LOAD_FAILED.value)
    except Exception as e:
        typer.echo(f"❌ Runtime error: {e}", err=True)
        raise typer.Exit(code=ExitCode.RUNTIME_ERROR.value)

    if descriptor is None:
        typer.echo(f"❌ No element selected within {timeout:.0f}s", err=True)
        raise typer.Exit(code=ExitCode.NOTHING_SELECTED.value)

    typer.echo(descriptor.model_dump_json(indent=2))


@app.command()
def validate_config(
    config_file: Annotated[
        Path,
        typer.Argument(help="Path to configuration file to validate")
    ],

    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Print the effective configuration")
    ] = False,
):
    """
    Validate a configuration file without loading any page.
    """
    config = load_settings(config_file)
    typer.echo(f"✅ Configuration file {config_file} is valid")

    if verbose:
        typer.echo(f"   Environment: {config.environment}")
        typer.echo(json.dumps(config.model_dump(exclude={"environments"}), indent=2))


def cli_main():
    """Entry point for console script."""
    app()


if __name__ == "__main__":
    cli_main()
