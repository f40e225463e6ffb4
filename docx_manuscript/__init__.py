"""Convert Markdown manuscripts into DOCX files styled by a house template."""
from docx_manuscript.config import ConversionConfig, load_config
from docx_manuscript.convert import convert, convert_file
from docx_manuscript.errors import ConversionError

__version__ = "0.1.0"

__all__ = ["ConversionConfig", "ConversionError", "convert", "convert_file", "load_config"]
