"""Content converters turning URLs, files and HTML into Markdown."""
from .engine import BrowserConverter, ConverterEngine, GenericUrlConverter, is_browser_only
from .files import convert_buffer
from .html import html_to_markdown
from .text import extract_description

__all__ = [
    "BrowserConverter",
    "ConverterEngine",
    "GenericUrlConverter",
    "convert_buffer",
    "extract_description",
    "html_to_markdown",
    "is_browser_only",
]
