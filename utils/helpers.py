"""
Helper utilities for the Chatbot Vendor Scanner
"""
import base64
from functools import lru_cache
from pathlib import Path
from typing import Iterable, Tuple


def encode_image_to_base64(image_bytes: bytes) -> str:
    """
    Convert raw screenshot bytes to a Base64 string for LLM vision input.

    Args:
        image_bytes: JPEG bytes of a capture

    Returns:
        Base64 encoded string of the image
    """
    return base64.standard_b64encode(image_bytes).decode('utf-8')


@lru_cache(maxsize=None)
def load_js_file(filename: str) -> str:
    """
    Load JavaScript code from the utils directory.

    Args:
        filename: Name of the JS file (e.g., 'frame_scan.js')

    Returns:
        JavaScript code as string
    """
    js_path = Path(__file__).parent / filename
    with open(js_path, 'r', encoding='utf-8') as f:
        return f.read()


def format_tried_points(points: Iterable[Tuple[float, float]]) -> str:
    """
    Format previously clicked points into a readable string for the LLM.

    Args:
        points: (x, y) pairs that were clicked without opening the chat

    Returns:
        Comma separated "(x, y)" list, or an empty string
    """
    points = list(points)
    if not points:
        return ""

    # Limit to the last 10 points to keep the prompt short
    recent = points[-10:]
    formatted = [f"({x:.0f}, {y:.0f})" for x, y in recent]
    if len(points) > 10:
        formatted.insert(0, f"... ({len(points) - 10} earlier points omitted) ...")
    return ", ".join(formatted)
