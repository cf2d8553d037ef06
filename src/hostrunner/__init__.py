"""
hostrunner - run selected tests from a test assembly inside a host application.

This package provides tools to:
- Discover installed instances of the host application
- Load a test assembly and select an assembly, fixture or single test
- Run the selection through the host process and record results
- Remember interactive settings between sessions
"""

__version__ = "0.1.0"
__author__ = "hostrunner Team"
