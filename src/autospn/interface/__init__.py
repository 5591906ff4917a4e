"""
Interface layer - typer CLI and rich formatters.
"""
