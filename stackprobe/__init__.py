"""
stackprobe — detect which technology stacks a workspace uses.
"""

__version__ = "0.1.0"
