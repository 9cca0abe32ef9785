"""Report renderers — Rich terminal tables and JSON."""
