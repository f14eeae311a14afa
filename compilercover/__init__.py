"""compilercover: retrofit statement coverage onto a Go compiler source tree."""

__version__ = "0.1.0"
