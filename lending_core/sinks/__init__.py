"""Output sinks for exporting lending data."""

from lending_core.sinks.console import ConsoleSink
from lending_core.sinks.json_file import JsonFileSink

__all__ = ["ConsoleSink", "JsonFileSink"]
