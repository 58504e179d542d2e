"""Persona and style instruction layers."""
