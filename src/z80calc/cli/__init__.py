"""
z80calc Command-Line Interface
==============================

- **main**: the `z80calc` ROM generator command

The command is a Click application with unified error reporting
(z80calc.cli.errors).
"""

__all__ = ["main"]
