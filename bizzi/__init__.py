"""Bizzi - conversational request pipeline for a small-business cofounder assistant."""

__version__ = "0.1.0"
__logo__ = "🐝"
