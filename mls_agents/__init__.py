"""Agent contact scraping pipeline: walk listings, parse contacts, merge to CSV."""
