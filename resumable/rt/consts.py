"""Contains constants for the runtime module."""
from typing import NewType

# Stronger typing for resume markers.
Marker = NewType("Marker", int)

START = Marker(0)  # A state that hasn't been invoked yet resumes at the entry block.
DONE = Marker(-1)  # Written once a procedure completes or fails; never a valid site.

PRIVATE_PREFIX = "_resumable_"  # Reserved for names generated by the compiler.
