"""Media CDN: store uploads, serve (resized) files, resolve URL embeds."""
__version__ = "0.3.0"
