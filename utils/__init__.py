"""
Utils package - Helper utilities for the Chatbot Vendor Scanner
"""
from .helpers import (
    encode_image_to_base64,
    load_js_file,
    format_tried_points
)

__all__ = [
    'encode_image_to_base64',
    'load_js_file',
    'format_tried_points'
]
