"""HTTP surface of the voting application."""
