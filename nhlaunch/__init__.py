"""Title lists, title IDs, launch options, module loading order and UI layout for a disc image launcher."""

__version__ = "0.1.0"