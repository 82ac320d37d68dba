"""Guest (demo) sessions backed by the ephemeral cache medium."""

import logging

from ..clock import Clock
from ..models import NOTIFICATIONS_KEY, MediaKind, Movie, Series
from .local_cache import LocalCache

logger = logging.getLogger(__name__)

POSTER_BASE = "https://image.tmdb.org/t/p/w500"

DEMO_MOVIES = [
    ("m1", "The Matrix", "1999", "/f89U3ADr1oiB1s9GkdPOEpXUk5H.jpg", 603),
    ("m2", "Top Gun: Maverick", "2022", "/62HCnUTziyWcpDaBO2i1DX17ljH.jpg", 361743),
    ("m3", "Spider-Man: No Way Home", "2021", "/1g0dhYtq4irTY1GPXvft6k4YLjm.jpg", 634649),
    ("m4", "The Avengers", "2012", "/RYMX2wcKCBAr24UyPD7xwmjaTn.jpg", 24428),
    ("m5", "The Dark Knight", "2008", "/qJ2tW6WMUDux911r6m7haRef0WH.jpg", 155),
    ("m6", "Dune", "2021", "/d5NXSklXo0qyIYkgV94XAgMIckC.jpg", 438631),
]

DEMO_SERIES = [
    ("s1", "Breaking Bad", "2008", "/ztkUQFLlC19CCMYHW9o1zWhJRNq.jpg", 1396),
    ("s2", "House", "2004", "/3Cz7ySOQJmqiuTdrc6CY0r65yDI.jpg", 1408),
    ("s3", "Chernobyl", "2019", "/hlLXt2tOPT6RRnjiUmoxyG1LTFi.jpg", 87108),
    ("s4", "Game of Thrones", "2011", "/u3bZgnGQ9T01sWNhyveQz0wH0Hl.jpg", 1399),
    ("s5", "Stranger Things", "2016", "/49WJfeN0moxb9IPfGn8AIqMGskD.jpg", 66732),
    ("s6", "Suits", "2011", "/vQiryp6LioFxQThywxbC6TuoDjy.jpg", 37680),
]


def guest_keys() -> list[str]:
    """Every cache key a guest session may have written."""
    keys = [NOTIFICATIONS_KEY]
    for kind in MediaKind:
        keys.extend(
            [
                kind.catalog_key,
                kind.order_key,
                kind.progress_key,
                kind.following_key,
                kind.sync_meta_key,
            ]
        )
    return keys


class GuestSession:
    """Switches the cache into ephemeral mode and seeds demo data."""

    def __init__(self, cache: LocalCache, clock: Clock | None = None):
        self.cache = cache
        self.clock = clock or Clock()

    @property
    def active(self) -> bool:
        return self.cache.session.is_ephemeral

    def enable(self) -> None:
        self.cache.session.set_ephemeral(True)
        self._clear()
        self._seed()
        logger.info("Guest session enabled with demo data")

    def disable(self) -> None:
        # Clear while still pointed at the ephemeral medium
        self.cache.session.set_ephemeral(True)
        self._clear()
        self.cache.session.set_ephemeral(False)
        logger.info("Guest session disabled")

    def _clear(self) -> None:
        for key in guest_keys():
            self.cache.remove(key)

    def _seed(self) -> None:
        now = self.clock.now_ms()
        movies = [
            Movie(id=mid, title=title, year=year, poster=f"{POSTER_BASE}{path}",
                  tmdb_id=tmdb_id, added_at=now)
            for mid, title, year, path, tmdb_id in DEMO_MOVIES
        ]
        series = [
            Series(id=sid, title=title, year=year, poster=f"{POSTER_BASE}{path}",
                   tmdb_id=tmdb_id, added_at=now)
            for sid, title, year, path, tmdb_id in DEMO_SERIES
        ]

        for kind, items in ((MediaKind.MOVIE, movies), (MediaKind.SERIES, series)):
            self.cache.set(kind.catalog_key, [item.to_dict() for item in items])
            self.cache.set(kind.order_key, [item.id for item in items])
            self.cache.set(kind.progress_key, {})
        self.cache.set(NOTIFICATIONS_KEY, [])
