"""Conversational request pipeline stages."""
