# enjoytravel_scraper/scrapers/__init__.py
from enjoytravel_scraper.scrapers.browserql import BrowserQLClient
from enjoytravel_scraper.scrapers.enjoytravel_scraper import EnjoyTravelScraper
from enjoytravel_scraper.scrapers.normalize import normalize_offers
from enjoytravel_scraper.scrapers.payload import decode_json_payload

__all__ = ["BrowserQLClient", "EnjoyTravelScraper", "normalize_offers", "decode_json_payload"]
