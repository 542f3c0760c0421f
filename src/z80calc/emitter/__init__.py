"""
z80calc Emitter
===============

Linear code/data emission with deferred label resolution.

- ImageBuilder: byte buffer, label table, absolute fixups, relative branches
- Image: the immutable, fully resolved result of ImageBuilder.finish()
- Z80Assembler: ImageBuilder plus named Z80 instruction helpers
"""

from z80calc.emitter.builder import Fixup, Image, ImageBuilder
from z80calc.emitter.z80 import Z80Assembler

__all__ = [
    "Fixup",
    "Image",
    "ImageBuilder",
    "Z80Assembler",
]
