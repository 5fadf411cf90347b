"""CLI interface for requester"""

import logging
import sys
from pathlib import Path
from typing import Optional

import click
import requests

from requester.domain.config import AppConfig
from requester.infrastructure.config.config_manager import ConfigManager, ConfigurationError
from requester.infrastructure.http.client import HTTPClient, client_from_config

logger = logging.getLogger(__name__)


def setup_logging(verbose: bool = False) -> None:
    """Setup logging configuration"""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        force=True,
    )
    logging.getLogger().setLevel(level)
    # urllib3 is chatty at DEBUG and adds nothing to the request dumps
    logging.getLogger("urllib3").setLevel(logging.INFO)


def _die(message: str, verbose: bool = False, exc: Optional[Exception] = None) -> None:
    """Exit with a user-friendly error message"""
    if exc is not None:
        logger.error(message, exc_info=verbose)
    else:
        logger.error(message)
    raise click.ClickException(message)


def _read_body(data: Optional[str], data_file: Optional[Path]) -> Optional[bytes]:
    """Resolve the request body from --data / --data-file

    Args:
        data: Literal body text
        data_file: File holding the body

    Returns:
        Body bytes or None
    """
    if data is not None and data_file is not None:
        raise click.UsageError("--data and --data-file are mutually exclusive")
    if data_file is not None:
        return data_file.read_bytes()
    if data is not None:
        return data.encode("utf-8")
    return None


def _apply_overrides(
    config: AppConfig,
    timeout: Optional[float],
    max_attempts: Optional[int],
    read_response: bool,
    idempotent_only: bool,
    expect_success: bool,
    dump: bool,
) -> AppConfig:
    """Apply CLI overrides on top of the loaded configuration

    Returns:
        Validated copy of the configuration
    """
    overrides = config.model_dump()
    if timeout is not None:
        overrides["http"]["timeout"] = timeout
    if expect_success:
        overrides["http"]["expect_success"] = True
    if dump:
        overrides["http"]["dump"] = True
    if max_attempts is not None:
        overrides["retry"]["max_attempts"] = max_attempts
    if read_response:
        overrides["retry"]["read_response"] = True
    if idempotent_only:
        overrides["retry"]["idempotent_only"] = True
    return AppConfig(**overrides)


def _output_response(response: requests.Response) -> None:
    """Print the status line to stderr and the body to stdout"""
    click.echo(f"HTTP {response.status_code} {response.reason or ''}".rstrip(), err=True)
    if response.content:
        click.echo(response.text)


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose logging")
@click.option(
    "--config",
    type=click.Path(exists=True, path_type=Path),
    help="Path to .requester.yml config file",
)
@click.pass_context
def cli(ctx, verbose: bool, config: Path):
    """requester - HTTP requests with retry and backoff"""
    ctx.ensure_object(dict)
    setup_logging(verbose)
    ctx.obj["config_path"] = config
    ctx.obj["verbose"] = verbose


@cli.command()
@click.argument("method", type=str)
@click.argument("url", type=str)
@click.option("--data", "-d", type=str, help="Request body")
@click.option(
    "--data-file",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="Read the request body from a file",
)
@click.option("--timeout", type=float, help="Per-attempt timeout in seconds. Overrides config.")
@click.option("--max-attempts", type=click.IntRange(min=1), help="Maximum attempts. Overrides config.")
@click.option("--read-response", is_flag=True, help="Retry errors raised while reading the body")
@click.option("--idempotent-only", is_flag=True, help="Only retry GET, HEAD, OPTIONS and TRACE")
@click.option("--expect-success", is_flag=True, help="Fail on non-2xx responses")
@click.option("--dump", is_flag=True, help="Log each request and response (needs --verbose)")
@click.pass_context
def send(
    ctx,
    method: str,
    url: str,
    data: Optional[str],
    data_file: Optional[Path],
    timeout: Optional[float],
    max_attempts: Optional[int],
    read_response: bool,
    idempotent_only: bool,
    expect_success: bool,
    dump: bool,
):
    """Send an HTTP request, retrying transient failures.

    METHOD: HTTP method (GET, POST, ...)
    URL: Absolute URL
    """
    verbose = ctx.obj.get("verbose", False)
    body = _read_body(data, data_file)

    try:
        config_manager = ConfigManager(config_path=ctx.obj.get("config_path"))
        config = _apply_overrides(
            config_manager.config,
            timeout,
            max_attempts,
            read_response,
            idempotent_only,
            expect_success,
            dump,
        )
    except ConfigurationError as e:
        _die(str(e), verbose=verbose, exc=e)
    except ValueError as e:
        _die(f"Invalid option: {e}", verbose=verbose, exc=e)

    logger.info(f"{method.upper()} {url} (max attempts: {config.retry.max_attempts})")
    client: HTTPClient = client_from_config(config)
    try:
        with client:
            response = client.request(method, url, data=body)
    except requests.HTTPError as e:
        if e.response is not None:
            _output_response(e.response)
        _die(f"Request failed: {e}", verbose=verbose, exc=e)
    except requests.RequestException as e:
        _die(f"Request failed: {e}", verbose=verbose, exc=e)

    _output_response(response)
    if not response.ok:
        sys.exit(1)


def main():
    """Main entry point"""
    cli(obj={})


if __name__ == "__main__":
    main()
