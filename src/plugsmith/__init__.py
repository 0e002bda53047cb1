"""plugsmith: fetch, build, test and load Python plugins from git or local paths."""

__version__ = "0.1.0"
