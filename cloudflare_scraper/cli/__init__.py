"""Command-line interface for cloudflare-scraper.

Fetches a URL one or more times concurrently through a single scraper,
solving any Cloudflare challenge on the way, and reports each result.
"""

import asyncio
import dataclasses
import logging
import sys
import time
from typing import Optional

import click

from ..config import ExecutorConfig, TransportConfig, load_config
from ..errors import ScraperError
from ..scraper import CloudflareScraper, create_scraper


# Configure logging for CLI
def setup_logging(verbose: int = 0) -> None:
    """Setup logging based on verbosity level."""
    if verbose == 0:
        level = logging.WARNING
    elif verbose == 1:
        level = logging.INFO
    else:
        level = logging.DEBUG

    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )
    package_logger = logging.getLogger("cloudflare_scraper")
    package_logger.setLevel(level)
    # Records reach stderr once, through the root handler
    for handler in list(package_logger.handlers):
        package_logger.removeHandler(handler)


async def fetch(scraper: CloudflareScraper, url: str) -> bool:
    """GET url once; return True when the final status is 200."""
    start = time.monotonic()
    try:
        response = await scraper.get(url)
    except ScraperError as e:
        click.echo(f"Request to {url} failed: {e}", err=True)
        return False

    elapsed = time.monotonic() - start
    click.echo(f"Fetched {url} in {elapsed:.3f}s, {len(response.content)} bytes "
               f"(status {response.status_code})")

    if response.status_code != 200:
        click.echo(f"Request to {url} returned status {response.status_code}", err=True)
        return False
    return True


async def run(url: str, parallel: int, config: TransportConfig,
              executor_config: ExecutorConfig) -> bool:
    async with create_scraper(config=config, executor_config=executor_config) as scraper:
        results = await asyncio.gather(*(fetch(scraper, url) for _ in range(parallel)))
    return all(results)


@click.command()
@click.argument('url')
@click.option('--parallel', '-p', default=1, type=click.IntRange(min=1),
              help='Number of concurrent requests')
@click.option('--verbose', '-v', count=True, help='Increase verbosity (use -vv for debug)')
@click.option('--config', '-c', type=click.Path(exists=True, dir_okay=False),
              help='JSON configuration file')
@click.option('--timeout', '-t', type=float, help='Bound on each request in seconds')
@click.option('--delay', type=float, help='Seconds to wait before answering a challenge')
@click.option('--proxy', help='Proxy URL (http://host:port)')
@click.option('--impersonate', help='curl_cffi browser impersonation target')
def cli(url: str, parallel: int, verbose: int, config: Optional[str],
        timeout: Optional[float], delay: Optional[float], proxy: Optional[str],
        impersonate: Optional[str]) -> None:
    """Fetch URL through Cloudflare's JavaScript challenge.

    Exits with status 1 if any request fails or ends with a status other
    than 200.
    """
    setup_logging(verbose)

    try:
        if config:
            transport_config, executor_config = load_config(config)
        else:
            transport_config, executor_config = TransportConfig(), ExecutorConfig()

        transport_changes = {}
        if timeout is not None:
            transport_changes["timeout"] = timeout
        if delay is not None:
            transport_changes["challenge_delay"] = delay
        if verbose >= 2:
            transport_changes["enable_detailed_logging"] = True
        transport_config = dataclasses.replace(transport_config, **transport_changes)
        transport_config.validate()

        executor_changes = {}
        if proxy:
            executor_changes["proxy_url"] = proxy
        if impersonate:
            executor_changes["impersonate"] = impersonate
        executor_config = dataclasses.replace(executor_config, **executor_changes)
        executor_config.validate()
    except ScraperError as e:
        click.echo(f"Invalid configuration: {e}", err=True)
        sys.exit(1)

    ok = asyncio.run(run(url, parallel, transport_config, executor_config))
    if not ok:
        sys.exit(1)


def main() -> None:
    """Main entry point for CLI."""
    cli()


if __name__ == '__main__':
    main()
