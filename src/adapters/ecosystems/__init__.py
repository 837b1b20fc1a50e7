"""Ecosystem handlers (file discovery and package metadata).

Why a package:
- One module per ecosystem; only Python is implemented so far.
"""

from adapters.ecosystems.python_handler import PythonHandler, calculate_file_priority, is_test_file

__all__ = [
	"PythonHandler",
	"calculate_file_priority",
	"is_test_file",
]
