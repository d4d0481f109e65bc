"""linkscan: crawl a website and report broken outbound references."""

__version__ = "0.1.0"
