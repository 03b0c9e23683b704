"""JSON Schema documents shipped as package data."""
