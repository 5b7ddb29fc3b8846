"""
VendorRegistry - Read-only, ordered table of chatbot vendor signatures

Each vendor has a name, its website, a network traffic keyword and a window
object name. To add a new vendor, append a record to vendors.json in the same
format as the existing ones; nothing else needs to change.
"""
import json
from functools import lru_cache
from pathlib import Path
from typing import Iterator, List, Optional, Sequence, Tuple, Union

from core.errors import VendorRegistryError
from core.models import VendorSignature

DEFAULT_VENDORS_FILE = Path(__file__).parent / "vendors.json"

REQUIRED_FIELDS = ("name", "website", "network_keyword", "window_object")


class VendorRegistry:
    """
    Immutable collection of VendorSignature records.

    Order is insertion order and only matters as a tie-break: when several
    signatures could match a page, the earliest one wins. Names are not
    unique, so reporting code should go through unique_names().
    """

    def __init__(self, signatures: Sequence[VendorSignature]):
        self._signatures: Tuple[VendorSignature, ...] = tuple(signatures)

    @classmethod
    def from_records(cls, records) -> "VendorRegistry":
        if not isinstance(records, list):
            raise VendorRegistryError("Vendor file must contain a JSON list of records")

        signatures: List[VendorSignature] = []
        for index, record in enumerate(records):
            signatures.append(_parse_record(index, record))
        return cls(signatures)

    @classmethod
    def from_file(cls, path: Union[str, Path, None] = None) -> "VendorRegistry":
        vendors_path = Path(path) if path else DEFAULT_VENDORS_FILE
        try:
            with open(vendors_path, 'r', encoding='utf-8') as f:
                records = json.load(f)
        except FileNotFoundError as e:
            raise VendorRegistryError(f"Vendor file not found: {vendors_path}") from e
        except json.JSONDecodeError as e:
            raise VendorRegistryError(f"Vendor file is not valid JSON ({vendors_path}): {e}") from e
        return cls.from_records(records)

    def lookup(self) -> Tuple[VendorSignature, ...]:
        return self._signatures

    def unique_names(self) -> List[str]:
        seen = set()
        names = []
        for signature in self._signatures:
            if signature.name not in seen:
                seen.add(signature.name)
                names.append(signature.name)
        return names

    def selectors_for(self, vendor_name: Optional[str]) -> List[str]:
        """Launcher selectors of every record carrying this name, in registry order."""
        if not vendor_name:
            return []
        selectors: List[str] = []
        for signature in self._signatures:
            if signature.name != vendor_name:
                continue
            for selector in signature.launcher_selectors:
                if selector not in selectors:
                    selectors.append(selector)
        return selectors

    def global_property_names(self) -> List[str]:
        return [s.global_property_name for s in self._signatures]

    def __iter__(self) -> Iterator[VendorSignature]:
        return iter(self._signatures)

    def __len__(self) -> int:
        return len(self._signatures)


def _parse_record(index: int, record) -> VendorSignature:
    if not isinstance(record, dict):
        raise VendorRegistryError(f"Vendor record #{index} is not an object")

    for key in REQUIRED_FIELDS:
        value = record.get(key)
        if not isinstance(value, str) or not value.strip():
            raise VendorRegistryError(
                f"Vendor record #{index} ({record.get('name', '?')}) has a missing or empty '{key}'"
            )

    selectors = record.get("launcher_selectors", [])
    if not isinstance(selectors, list) or not all(isinstance(s, str) and s for s in selectors):
        raise VendorRegistryError(
            f"Vendor record #{index} ({record['name']}) has invalid 'launcher_selectors'"
        )

    return VendorSignature(
        name=record["name"],
        homepage_url=record["website"],
        network_substring=record["network_keyword"],
        global_property_name=record["window_object"],
        launcher_selectors=tuple(selectors),
    )


@lru_cache(maxsize=None)
def get_registry(path: Optional[str] = None) -> VendorRegistry:
    """Process-wide registry, loaded once. Safe to share across concurrent scans."""
    return VendorRegistry.from_file(path)
