"""
Blogging lab: engagement ranking and comment threading over
relational, document and cache stores.
"""

__version__ = "1.0.0"
