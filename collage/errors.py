"""
Error handling for the collage composition engine.

Provides specific exception types for the different failure modes of
placement, rendering and export, with enough context for debugging and
for showing a single actionable message to the user.
"""

from typing import Dict, List, Optional, Any


class CollageError(Exception):
    """Base exception for all collage engine errors."""

    def __init__(self, message: str, details: Dict[str, Any] = None, suggestions: List[str] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}
        self.suggestions = suggestions or []

    def to_dict(self) -> Dict[str, Any]:
        """Convert error to dictionary for JSON serialization."""
        return {
            'error_type': self.__class__.__name__,
            'message': self.message,
            'details': self.details,
            'suggestions': self.suggestions
        }


class ValidationError(CollageError):
    """Raised when caller input validation fails."""
    pass


class ConfigurationError(CollageError):
    """Raised when configuration is invalid or missing."""
    pass


class LayoutError(CollageError):
    """Raised when a layout or cell key cannot be resolved."""
    pass


class RenderError(CollageError):
    """Raised when composing the output surface fails."""
    pass


class OptimizationError(CollageError):
    """Raised inside the optimizer; never escapes an export."""
    pass


class ImageLoadError(RenderError):
    """Raised when the image assigned to a cell cannot be loaded or decoded."""

    def __init__(self, key: str, source: Any = None, reason: str = None):
        source_label = _describe_source(source)
        message = f"Could not load image for cell {key}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(
            message,
            details={
                'cell_key': key,
                'source': source_label,
                'reason': reason
            },
            suggestions=[
                "Replace the photo in this cell with a different image",
                "Check that the file is a JPG, PNG or WEBP image and is not corrupted",
                "If the photo is a link, make sure it is still reachable"
            ]
        )
        self.key = key


class ExportError(CollageError):
    """Raised when an export cannot produce a file."""

    def __init__(self, filename: str, reason: str, cell_key: Optional[str] = None):
        details = {'filename': filename, 'reason': reason}
        if cell_key is not None:
            details['cell_key'] = cell_key
        message = f"Export of {filename} failed: {reason}"
        super().__init__(
            message,
            details=details,
            suggestions=[
                "Fix or replace the photo named in the error and export again",
                "Check that the output folder exists and is writable"
            ]
        )
        self.cell_key = cell_key


class UnknownTemplateError(ValidationError):
    """Raised when a template kind name is not recognised."""

    def __init__(self, name: str, known: List[str]):
        super().__init__(
            f"Unknown template kind: {name}",
            details={'template': name, 'known_templates': known},
            suggestions=[f"Use one of: {', '.join(known)}"]
        )


def _describe_source(source: Any) -> Optional[str]:
    if source is None:
        return None
    if isinstance(source, (bytes, bytearray)):
        return f"<{len(source)} bytes>"
    text = str(source)
    if text.startswith('data:'):
        return text.split(',', 1)[0] + ',...'
    return text if len(text) <= 120 else text[:117] + '...'


def create_error_recovery_suggestions(error: Exception, context: Dict[str, Any] = None) -> List[str]:
    """Generate contextual recovery suggestions for any error."""
    suggestions = []

    if isinstance(error, CollageError):
        suggestions.extend(error.suggestions)

    if context:
        if context.get('member_count', 1) <= 0:
            suggestions.append("Add at least one member photo before exporting")

        if context.get('missing_images_count', 0) > 0:
            suggestions.append("Some cells are empty; they will be left as background")

    if not suggestions:
        suggestions = [
            "Try exporting again",
            "Check that all member photos can be opened",
            "Contact support if the problem persists"
        ]

    return suggestions
