"""
Element type handlers.

Each element type (quiz, reflection, poll, etc.) has its own module with:
- render(): Build the widget body shown inside a section
- check(): Reject structurally invalid submissions
- meets_minimum(): Minimum constraints for self-check elements
- grade(): Score a submission for graded elements
"""
from typing import TYPE_CHECKING

from civicbook.schema import ElementType

if TYPE_CHECKING:
    from .base import ElementHandler


# Handler registry - populated by @register decorator
HANDLERS: dict[ElementType, "ElementHandler"] = {}


def register(element_type: ElementType):
    """Decorator to register an element handler."""
    def decorator(cls):
        HANDLERS[element_type] = cls()
        return cls
    return decorator


def get_handler(element_type: str | ElementType) -> "ElementHandler | None":
    """Get the handler for an element type."""
    if isinstance(element_type, str):
        try:
            element_type = ElementType(element_type.lower())
        except ValueError:
            return None
    return HANDLERS.get(element_type)


# Import handlers to trigger registration
from . import quiz
from . import reflection
from . import call_to_action
from . import discussion_prompt
from . import poll

__all__ = [
    "ElementType",
    "HANDLERS",
    "get_handler",
    "register",
]
