"""Scrape service contract; concrete scrapers live outside this package."""

from pricepulse.scraping.base import BaseScrapeService, load_scrape_service

__all__ = ["BaseScrapeService", "load_scrape_service"]
