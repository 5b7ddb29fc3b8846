"""
Chatbot Vendor Scanner
Identifies chatbot vendors on web pages and evaluates their welcome messages
Entry point for running scans

Usage:
    python main.py                                 interactive mode
    python main.py --url URL [--welcome]           single page
    python main.py --registry [--concurrency N]    every vendor homepage
    add --headed to watch the browser
"""
import asyncio
import sys
from typing import List, Optional

from dotenv import load_dotenv
from rich.console import Console
from rich.table import Table

from config import Config
from core.errors import ScannerError
from core.logger import ScanLogger
from core.models import AnalysisResult, FingerprintMethod, FingerprintResult
from engines.scanner import ChatbotScanner, build_scanner

console = Console()

MARGIN_OF_ERROR_NOTE = (
    "Note: Detection is based on our algorithm and may have a margin of error. "
    "We recommend verifying manually for accuracy."
)


def show_banner():
    """Display the main banner."""
    console.print("\n" + "=" * 70)
    console.print("[bold blue]🤖 CHATBOT VENDOR SCANNER[/bold blue]")
    console.print("=" * 70)
    console.print("🔎 Identifies chatbot vendors from network traffic and window objects")
    console.print("💬 Opens the chat widget and scores its welcome message")
    console.print("=" * 70 + "\n")


def print_fingerprint(result: FingerprintResult):
    if result.method == FingerprintMethod.TIMEOUT:
        console.print("[yellow]⏳ The analysis timed out. The page might be too slow or unresponsive.[/yellow]")
    elif result.method == FingerprintMethod.ERROR:
        console.print("[red]❌ An error occurred while analyzing the page. Please try again later.[/red]")
    elif result.detected:
        console.print(f"[green]✅ Detected vendor: {result.vendor_name} (Method: {result.method.value})[/green]")
    else:
        console.print("[cyan]🔍 No chatbot vendor detected from our database.[/cyan]")


def print_analysis(result: AnalysisResult):
    print_fingerprint(FingerprintResult(vendor_name=result.vendor_name, method=result.method))

    welcome = result.welcome_message
    if welcome is not None:
        status = "[green]opened[/green]" if welcome.attempts == "success" else "[yellow]not opened[/yellow]"
        console.print(f"\n💬 Chat widget: {status}")
        if welcome.score is not None:
            console.print(f"📊 Welcome message score: [bold]{welcome.score}/100[/bold]")
        if welcome.evaluation:
            console.print(f"\n{welcome.evaluation}")
        if welcome.error:
            console.print(f"\n[dim]{welcome.error}[/dim]")


def print_footer():
    console.print(f"\n[magenta]{MARGIN_OF_ERROR_NOTE}[/magenta]")
    console.print("[dim]" + "-" * 50 + "[/dim]\n")


def print_registry_table(results: List[AnalysisResult], scanner: ChatbotScanner):
    expected = {}
    for signature in scanner.registry:
        expected.setdefault(signature.homepage_url, signature.name)

    table = Table(title="Registry self-check")
    table.add_column("URL", style="cyan")
    table.add_column("Expected")
    table.add_column("Detected")
    table.add_column("Method")

    for result in results:
        wanted = expected.get(result.url, "")
        style = "green" if result.vendor_name == wanted else "red"
        table.add_row(result.url, wanted, f"[{style}]{result.vendor_name or '-'}[/{style}]", result.method.value)

    console.print(table)
    matched = sum(1 for r in results if r.vendor_name == expected.get(r.url))
    console.print(f"\n✅ Matched: {matched}/{len(results)}")


async def run_single(scanner: ChatbotScanner, url: str, welcome: bool):
    if welcome:
        result = await scanner.analyze(url)
        print_analysis(result)
    else:
        result = await scanner.detect(url)
        print_fingerprint(result)
    print_footer()
    return result


async def run_interactive(scanner: ChatbotScanner, welcome: bool):
    console.print("[cyan]This tool identifies chatbot vendors on a given webpage.[/cyan]")
    console.print("[dim]Type 'exit' to quit.[/dim]\n")
    while True:
        try:
            url = console.input("[yellow]Enter a URL to analyze and press Enter:[/yellow]\n[green]URL:[/green] ").strip()
        except EOFError:
            break
        if not url:
            continue
        if url.lower() in ("exit", "quit"):
            break
        try:
            await run_single(scanner, url, welcome)
        except ScannerError as e:
            console.print(f"[red]Error analyzing the page: {e}[/red]\n")


def parse_args(argv: List[str]) -> dict:
    options = {
        "url": None,
        "welcome": False,
        "registry": False,
        "concurrency": None,
        "headed": False,
    }

    i = 0
    while i < len(argv):
        arg = argv[i]
        if arg == '--url' and i + 1 < len(argv):
            options["url"] = argv[i + 1]
            i += 2
        elif arg == '--concurrency' and i + 1 < len(argv):
            options["concurrency"] = int(argv[i + 1])
            i += 2
        elif arg == '--welcome':
            options["welcome"] = True
            i += 1
        elif arg == '--registry':
            options["registry"] = True
            i += 1
        elif arg == '--headed':
            options["headed"] = True
            i += 1
        else:
            console.print(f"[yellow]⚠️  Ignoring unknown argument: {arg}[/yellow]")
            i += 1
    return options


async def run(options: dict) -> Optional[int]:
    logger = ScanLogger(Config.OUTPUT_DIR, save_screenshots=Config.SAVE_SCREENSHOTS)
    try:
        return await run_mode(build_scanner(logger=logger, headless=not options["headed"]), logger, options)
    finally:
        logger.close()


async def run_mode(scanner: ChatbotScanner, logger: ScanLogger, options: dict) -> Optional[int]:
    if options["welcome"]:
        # Validate configuration
        try:
            Config.validate()
        except ValueError as e:
            console.print(f"[red]Configuration error: {e}[/red]")
            console.print("\n[yellow]Please create a .env file with:[/yellow]")
            console.print("OPENAI_API_KEY=your_api_key_here\n")
            return 1

    if options["registry"]:
        console.print(f"[bold]📋 Scanning {len(scanner.registry.unique_names())} registry vendors...[/bold]")
        results = await scanner.scan_registry(
            concurrency=options["concurrency"],
            evaluate_welcome=None if options["welcome"] else False,
        )
        print_registry_table(results, scanner)
        print_footer()
        summary_path = logger.save_summary({"results": [r.to_dict() for r in results]})
        console.print(f"💾 Summary saved to: {summary_path}\n")
        return 0

    if options["url"]:
        try:
            await run_single(scanner, options["url"], options["welcome"])
        except ScannerError as e:
            console.print(f"[red]❌ Error analyzing the page: {e}[/red]")
            return 1
        return 0

    await run_interactive(scanner, options["welcome"])
    console.print("👋 Thank you for using the Chatbot Vendor Scanner!")
    return 0


def main():
    """Main entry point for the scanner."""
    load_dotenv()
    show_banner()

    options = parse_args(sys.argv[1:])
    try:
        exit_code = asyncio.run(run(options))
    except KeyboardInterrupt:
        console.print("\n\n👋 Scan interrupted by user.")
        exit_code = 130
    sys.exit(exit_code or 0)


if __name__ == "__main__":
    main()
