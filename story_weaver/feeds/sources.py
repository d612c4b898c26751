"""Curated kid-friendly RSS feeds, two per category."""

from __future__ import annotations

CURATED_FEEDS: dict[str, list[str]] = {
    "science": [
        "https://www.sciencedaily.com/rss/all.xml",
        "https://feeds.feedburner.com/ScienceDaily",
    ],
    "positive": [
        "https://www.goodnewsnetwork.org/feed/",
        "https://feeds.feedburner.com/GoodNewsNetwork",
    ],
    "education": [
        "https://www.edutopia.org/rss.xml",
        "https://feeds.feedburner.com/Edutopia",
    ],
    "nature": [
        "https://www.nationalgeographic.com/kids/feed/",
        "https://feeds.nationalgeographic.com/ng/News/News_Main",
    ],
    "sports": [
        "https://www.si.com/rss/si_kids.rss",
        "https://feeds.feedburner.com/SportsIllustrated",
    ],
    "arts": [
        "https://www.arts.gov/rss.xml",
        "https://feeds.feedburner.com/ArtsJournal",
    ],
    "technology": [
        "https://feeds.feedburner.com/TechCrunch",
        "https://feeds.feedburner.com/ArsTechnica",
    ],
    "animals": [
        "https://www.nationalgeographic.com/animals/feed/",
        "https://feeds.feedburner.com/NationalGeographicAnimals",
    ],
}
