"""
FingerprintMatcher - passive vendor identification

Two independent signals are read from an already-navigated page:
  1. network: a loaded resource URL contains the vendor's network keyword
  2. globalScope: the vendor's script exposed its object on window
Nothing on the page is clicked or modified.
"""
from typing import Iterable, List, Optional

from playwright.async_api import TimeoutError as PlaywrightTimeoutError
from rich.console import Console

from core.logger import ScanLogger
from core.models import FingerprintMethod, FingerprintResult, PageSession, VendorSignature
from detectors.vendor_registry import VendorRegistry

console = Console()

RESOURCE_ENTRIES_JS = """
() => performance.getEntriesByType('resource').map(r => r.name)
"""

GLOBAL_PROBE_JS = """
(names) => names.filter(name => {
    try {
        return typeof window[name] !== 'undefined';
    } catch (e) {
        return false;
    }
})
"""


def match_network(resource_urls: Iterable[str], registry: VendorRegistry) -> Optional[VendorSignature]:
    """First signature (registry order) whose keyword appears in any resource URL."""
    urls = list(resource_urls)
    for signature in registry.lookup():
        if any(signature.network_substring in url for url in urls):
            return signature
    return None


def match_global(present_properties: Iterable[str], registry: VendorRegistry) -> Optional[VendorSignature]:
    """First signature (registry order) whose window object is present on the page."""
    present = set(present_properties)
    for signature in registry.lookup():
        if signature.global_property_name in present:
            return signature
    return None


def resolve_fingerprint(network_vendor: Optional[VendorSignature],
                        global_vendor: Optional[VendorSignature]) -> FingerprintResult:
    """
    Merge both signals. When they disagree the network vendor is reported:
    network is the primary signal.
    """
    if network_vendor and global_vendor:
        return FingerprintResult(vendor_name=network_vendor.name, method=FingerprintMethod.BOTH)
    if network_vendor:
        return FingerprintResult(vendor_name=network_vendor.name, method=FingerprintMethod.NETWORK)
    if global_vendor:
        return FingerprintResult(vendor_name=global_vendor.name, method=FingerprintMethod.GLOBAL_SCOPE)
    return FingerprintResult.none()


class FingerprintMatcher:

    def __init__(self, logger: ScanLogger):
        self.logger = logger

    async def match(self, session: PageSession, registry: VendorRegistry) -> FingerprintResult:
        console.print("[cyan]🔎 FINGERPRINT: Checking network traffic and window objects...[/cyan]")
        try:
            resource_urls = await self._collect_resource_urls(session)
            present = await session.page.evaluate(GLOBAL_PROBE_JS, registry.global_property_names())
        except (PlaywrightTimeoutError, TimeoutError) as e:
            console.print(f"[yellow]   ⏳ Fingerprint timed out: {e}[/yellow]")
            self.logger.log_error("fingerprint_timeout", str(e), {"url": session.url})
            result = FingerprintResult.timeout()
            self.logger.log_fingerprint(session.url, result)
            return result
        except Exception as e:
            console.print(f"[red]   ❌ Fingerprint failed: {e}[/red]")
            self.logger.log_error("fingerprint_failed", str(e), {"url": session.url})
            result = FingerprintResult.error()
            self.logger.log_fingerprint(session.url, result)
            return result

        network_vendor = match_network(resource_urls, registry)
        global_vendor = match_global(present or [], registry)

        if network_vendor and global_vendor and network_vendor.name != global_vendor.name:
            self.logger.log_info(
                f"Signals disagree on {session.url}: network={network_vendor.name}, "
                f"globalScope={global_vendor.name}; reporting network vendor"
            )

        result = resolve_fingerprint(network_vendor, global_vendor)
        self.logger.log_fingerprint(session.url, result)

        if result.detected:
            console.print(f"[green]   ✅ Detected vendor: {result.vendor_name} (method: {result.method.value})[/green]")
        else:
            console.print("[yellow]   No chatbot vendor from the registry detected[/yellow]")
        return result

    async def _collect_resource_urls(self, session: PageSession) -> List[str]:
        entries = await session.page.evaluate(RESOURCE_ENTRIES_JS) or []
        urls: List[str] = []
        seen = set()
        for url in list(session.resource_urls) + list(entries):
            if url not in seen:
                seen.add(url)
                urls.append(url)
        return urls
