"""
civicbook: interactive element engine for civic-education books.

Sections of a book embed interactive elements (quizzes, reflections, calls to
action, discussion prompts, polls) through placeholders in their markup. This
package validates element payloads, renders sections, grades submissions and
keeps per-user book progress in step with every response.
"""

__version__ = "1.0.0"
