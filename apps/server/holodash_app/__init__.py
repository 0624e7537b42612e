"""HoloDash command-line application."""
