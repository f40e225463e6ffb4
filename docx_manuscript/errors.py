"""Exception hierarchy for the Markdown-to-DOCX conversion.

Every failure aborts the whole conversion; the CLI turns any
``ConversionError`` into a one-line message and a non-zero exit status.
"""
from __future__ import annotations


class ConversionError(Exception):
    """Base class for every error raised while converting a manuscript."""


# ---------------------------------------------------------------------------
# Malformed input
# ---------------------------------------------------------------------------
class MalformedInput(ConversionError):
    """Input could not be parsed or has the wrong shape."""


class MalformedXml(MalformedInput):
    """An XML part (or fragment) is not well-formed."""


class MalformedMetadata(MalformedInput):
    """A metadata value exists but has the wrong kind."""

    def __init__(self, path: str, expected: str, actual: str):
        self.path = path
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Failed to parse document metadata: expected {expected} at path {path or '<root>'}, "
            f"got {actual} instead"
        )


class MalformedMarkdown(MalformedInput):
    """The Markdown source (or its front matter) cannot be parsed."""


class UnrecognizedStyle(MalformedInput):
    """A style in incoming content is neither mapped nor allowed to pass through."""

    def __init__(self, style_name: str):
        self.style_name = style_name
        super().__init__(f"Style {style_name!r} is not recognized by the house template")


# ---------------------------------------------------------------------------
# Missing resources
# ---------------------------------------------------------------------------
class MissingRequiredResource(ConversionError):
    """Something the conversion depends on is absent."""


class MissingRequiredPart(MissingRequiredResource):
    """A mandatory package part could not be resolved."""


class MissingTemplate(MissingRequiredResource):
    """The reference template cannot be found."""


class MissingNamedStyle(MissingRequiredResource):
    """A style expected by name is not defined in a style sheet."""

    def __init__(self, style_name: str, where: str = "styles"):
        self.style_name = style_name
        super().__init__(f"Style named {style_name!r} not found in {where}")


class UnknownStyleId(MissingRequiredResource):
    """A referenced style id has no definition."""

    def __init__(self, style_id: str):
        self.style_id = style_id
        super().__init__(f"Style id {style_id!r} not found")


class MissingMetadataField(MissingRequiredResource):
    """A metadata path does not exist."""

    def __init__(self, path: str, expected: str):
        self.path = path
        self.expected = expected
        super().__init__(
            f"Failed to parse document metadata: expected to have {expected} at path {path or '<root>'}"
        )


class PlaceholderNotFound(MissingRequiredResource):
    """The template lacks a mandatory placeholder paragraph."""

    def __init__(self, pattern: str):
        self.pattern = pattern
        super().__init__(f"The template document should have pattern {pattern}")


class IntegrityError(MissingRequiredResource):
    """The composed package references something it does not contain."""


# ---------------------------------------------------------------------------
# Ambiguity and misuse
# ---------------------------------------------------------------------------
class AmbiguousMatch(ConversionError):
    """A single-result query matched more than one node."""


class PlaceholderNotExclusive(AmbiguousMatch):
    """A placeholder marker shares its paragraph with other text."""

    def __init__(self, pattern: str, text: str):
        self.pattern = pattern
        self.text = text
        super().__init__(f"The {pattern} pattern should be the only text of the paragraph, found {text!r}")


class UseAfterInvalidation(ConversionError):
    """A traversal-scoped node handle was used after its callback returned."""


class ExternalToolError(ConversionError):
    """An external conversion step (math transform, image download) failed."""
