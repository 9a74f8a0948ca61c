"""
guidget/__init__.py

Listener command analysis for Java GUI code: which widget produces each
command of a listener, and splitting of multi-command listeners into one
listener per widget.
"""

__version__ = "0.1.0"
