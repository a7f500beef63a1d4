# enjoytravel_scraper/__init__.py
__version__ = "0.1.0"
