"""Ingestion of raw RFC822 payloads."""

from .parser import EmailParser, html_to_text

__all__ = ["EmailParser", "html_to_text"]
