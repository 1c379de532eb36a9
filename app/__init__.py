"""Brand Ads Analytics service"""

__version__ = "1.0.0"
