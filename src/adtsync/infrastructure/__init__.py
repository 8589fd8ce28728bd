"""
adtsync.infrastructure - Infrastructure Layer
===============================================

Local-side adapters:

    - file_collector: expands the resource glob patterns into a file list
"""

from adtsync.infrastructure.file_collector import collect_files

__all__ = ["collect_files"]
