"""CLI entry point for scam analyzer."""

import asyncio
import logging
from pathlib import Path
from typing import Optional

import typer

from scam_analyzer.adapters.storage import YamlKeyValueStore
from scam_analyzer.config import get_settings
from scam_analyzer.core import AnalysisRejected, AnalysisRequest, ApiError, ConfigurationError
from scam_analyzer.core.redaction import mask_api_key
from scam_analyzer.use_cases import AnalysisService

app = typer.Typer(help="Analyze pages for scam indicators with an LLM.", no_args_is_help=True)

RISK_EMOJI = {
    "SAFE": "✅",
    "LOW": "🟢",
    "MEDIUM": "🟡",
    "HIGH": "🟠",
    "CRITICAL": "🔴",
}

ConfigOption = typer.Option(Path("config.yaml"), "--config", help="Path to config.yaml")
DebugOption = typer.Option(False, "--debug", help="Verbose logging")


async def open_service(config: Path, debug: bool) -> AnalysisService:
    """Load settings and both storage scopes, then build the service."""
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    settings = get_settings(config)
    sync_store = YamlKeyValueStore(settings.storage.sync_path)
    local_store = YamlKeyValueStore(settings.storage.local_path)
    try:
        return await AnalysisService.create(settings, sync_store, local_store)
    except ConfigurationError as e:
        print(f"\n❌ Configuration problem: {e}")
        print("   Set api.endpoint and api.model in config.yaml and SCAM_ANALYZER_API_KEY in the environment")
        raise typer.Exit(code=2)


async def async_analyze(request: AnalysisRequest, config: Path, debug: bool) -> None:
    """Async implementation of the analyze command."""
    service = await open_service(config, debug)

    print(f"\n🔍 Analyzing {request.url}")
    print(f"  └─ Model: {service.settings.api.model}")
    print(f"  └─ Key: {mask_api_key(service.settings.api.api_key)}")

    try:
        result = await service.analyze(request)
    except ApiError as e:
        hint = "check your settings" if e.is_configuration_problem else "try again later"
        print(f"\n❌ Analysis failed [{e.kind.value}]: {e.message} ({hint})")
        raise typer.Exit(code=1)
    except AnalysisRejected as e:
        print(f"\n⚠️  Request rejected: {e}")
        raise typer.Exit(code=1)
    finally:
        await service.close()

    print(f"\n{RISK_EMOJI.get(result.risk_level.value, '•')} Risk level: {result.risk_level.value}")
    print(f"  • Confidence: {result.confidence:.0%}")
    print(f"  • Threats: {', '.join(t.value for t in result.threats) or 'none'}")
    print(f"  • Explanation: {result.explanation}")
    for passage in result.suspicious_passages or ():
        labels = ", ".join(label.value for label in passage.labels)
        print(f"    └─ \"{passage.text}\" [{labels}] {passage.reason}")


@app.command()
def analyze(
    url: str,
    content: str = typer.Option("", "--content", help="Visible page text"),
    content_file: Optional[Path] = typer.Option(None, "--content-file", help="Read page text from a file"),
    title: str = typer.Option("", "--title", help="Page title"),
    config: Path = ConfigOption,
    debug: bool = DebugOption,
) -> None:
    """Analyze one page and print the verdict."""
    if content_file is not None:
        content = content_file.read_text(encoding="utf-8")
    request = AnalysisRequest(url=url, body_text=content, title=title)
    asyncio.run(async_analyze(request, config, debug))


async def async_test_connection(config: Path, debug: bool) -> None:
    service = await open_service(config, debug)
    report = await service.test_connection()
    if report.success:
        print(f"✓ {report.message} ({report.latency_ms} ms)")
    else:
        print(f"✗ {report.message} ({report.latency_ms} ms)")
        raise typer.Exit(code=1)


@app.command("test-connection")
def test_connection(config: Path = ConfigOption, debug: bool = DebugOption) -> None:
    """Send one minimal request to the configured endpoint."""
    asyncio.run(async_test_connection(config, debug))


async def async_cache_stats(config: Path, debug: bool) -> None:
    service = await open_service(config, debug)
    stats = service.get_cache_stats()
    print(f"📦 Cached analyses: {stats.size}")
    print(f"  • Hits: {stats.hits}")
    print(f"  • Misses: {stats.misses}")
    print(f"  • Hit rate: {stats.hit_rate:.0%}")


@app.command("cache-stats")
def cache_stats(config: Path = ConfigOption, debug: bool = DebugOption) -> None:
    """Show the number of cached analyses."""
    asyncio.run(async_cache_stats(config, debug))


async def async_clear_cache(domain: Optional[str], config: Path, debug: bool) -> None:
    service = await open_service(config, debug)
    cleared = await service.clear_cache(domain)
    print(f"🧹 Cleared {cleared} cached analyses for {domain or 'all domains'}")


@app.command("clear-cache")
def clear_cache(
    domain: Optional[str] = typer.Option(None, "--domain", help="Only clear this domain"),
    config: Path = ConfigOption,
    debug: bool = DebugOption,
) -> None:
    """Remove cached analyses."""
    asyncio.run(async_clear_cache(domain, config, debug))


async def async_sweep(config: Path, debug: bool) -> None:
    service = await open_service(config, debug)
    cleared = await service.sweep_expired()
    print(f"🧹 Removed {cleared} expired entries")


@app.command()
def sweep(config: Path = ConfigOption, debug: bool = DebugOption) -> None:
    """Remove expired cache entries."""
    asyncio.run(async_sweep(config, debug))


async def async_trust(domain: str, remove: bool, config: Path, debug: bool) -> None:
    service = await open_service(config, debug)
    if remove:
        changed = await service.remove_trusted_domain(domain)
        print(f"🗑️  Removed {domain} from trusted domains" if changed else f"• {domain} was not trusted")
    else:
        changed = await service.add_trusted_domain(domain)
        print(f"🛡️  Trusted {domain}" if changed else f"• {domain} is already trusted")
    print(f"  └─ Trusted domains: {', '.join(service.trusted_domains) or 'none'}")


@app.command()
def trust(domain: str, config: Path = ConfigOption, debug: bool = DebugOption) -> None:
    """Never send a domain or its subdomains for analysis."""
    asyncio.run(async_trust(domain, False, config, debug))


@app.command()
def untrust(domain: str, config: Path = ConfigOption, debug: bool = DebugOption) -> None:
    """Remove a domain from the trusted list."""
    asyncio.run(async_trust(domain, True, config, debug))


if __name__ == "__main__":
    app()
