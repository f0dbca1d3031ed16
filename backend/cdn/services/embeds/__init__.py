"""Embed resolution: HTML metadata scraping, provider classification, media probing."""
from cdn.services.embeds.http import FetchResult, HttpClient
from cdn.services.embeds.resolver import EmbedResolver

__all__ = ["EmbedResolver", "FetchResult", "HttpClient"]
