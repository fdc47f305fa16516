from .extractors import extract_tracking_data
from .laar_scraper import LaarScraper
from .simple_scraper import SimpleScraper

__all__ = ["extract_tracking_data", "LaarScraper", "SimpleScraper"]
