"""
DAMS Codec Command-Line Interface
=================================

- **damsdecode**: decode DAMS binary sources to text, or encode them back

Implemented as a Click application; every option keeps a single-letter
form (-e, -c, -F, -o, -S) for use in shell pipelines.
"""

__all__ = ["damsdecode"]
