"""Core selection and run orchestration.

The executor and runner modules depend on storage and are imported directly.
"""

from hostrunner.core.discovery import HostDiscovery, discover_hosts, resolve_host_path
from hostrunner.core.loader import AssemblyLoader, load_assemblies
from hostrunner.core.selector import resolve_target
from hostrunner.core.state import RunConfiguration

__all__ = [
    "AssemblyLoader",
    "HostDiscovery",
    "RunConfiguration",
    "discover_hosts",
    "load_assemblies",
    "resolve_host_path",
    "resolve_target",
]
