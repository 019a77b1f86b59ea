"""metascout: metagame snapshot scraper and deck classifier."""
