"""
Glimpse - copy a workspace's files into the clipboard as LLM context.

The workspace is walked once, every non-excluded file is classified
(text with a language tag, empty, unreadable or binary), and the rendered
document, a directory tree followed by one block per file, is handed to
the system clipboard.
"""

__version__ = "0.2.0"
