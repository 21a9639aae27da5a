"""
actorqueue - Priority job queue for Apify scraping actors.

Runs platform scrapes (Reddit, X) through Apify actors with bounded
concurrency, progress tracking and automatic API token rotation.
"""

__version__ = "0.1.0"
__app_name__ = "actorqueue"
