# --- keep this shim at the very top ---
import os
import sys

ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)
# --------------------------------------

import math
from typing import Any, Dict, List, Optional

import httpx
import pytest

from rickmorty_browser import upstream
from rickmorty_browser.schemas import Character
from rickmorty_browser.session_store import session_store

API = "https://rickandmortyapi.com/api"
LISTING = f"{API}/character"


def ep(n: int) -> str:
    return f"{API}/episode/{n}"


def make_character(
    id: int,
    name: str,
    status: str = "Alive",
    species: str = "Human",
    type: str = "",
    gender: str = "Male",
    episodes: Optional[List[str]] = None,
    location: str = "Earth (Replacement Dimension)",
) -> Dict[str, Any]:
    """Build a raw character dict shaped like the listing endpoint's results."""
    return {
        "id": id,
        "name": name,
        "status": status,
        "species": species,
        "type": type,
        "gender": gender,
        "origin": {"name": "Earth (C-137)", "url": f"{API}/location/1"},
        "location": {"name": location, "url": f"{API}/location/3"},
        "image": f"{API}/character/avatar/{id}.jpeg",
        "episode": [ep(1)] if episodes is None else episodes,
        "url": f"{API}/character/{id}",
        "created": "2017-11-04T18:48:46.250Z",
    }


EPISODE_NAMES = {
    ep(1): "Pilot",
    ep(10): "Close Rick-counters of the Rick Kind",
    ep(31): "The Rickchurian Mortydate",
    ep(51): "Rickmurai Jack",
}

ROSTER: List[Dict[str, Any]] = [
    make_character(1, "Rick Sanchez", episodes=[ep(1), ep(10), ep(51)], location="Citadel of Ricks"),
    make_character(2, "Morty Smith", episodes=[ep(1), ep(51)]),
    make_character(3, "Summer Smith", gender="Female"),
    make_character(4, "Beth Smith", gender="Female"),
    make_character(5, "Jerry Smith"),
    make_character(6, "Abadango Cluster Princess", species="Alien", gender="Female"),
    make_character(7, "Abradolf Lincler", status="unknown", type="Genetic experiment"),
    make_character(8, "Adjudicator Rick", status="Dead"),
    make_character(9, "Agency Director", status="Dead"),
    make_character(10, "Alan Rails", status="Dead", type="Superhuman (Ghost trains summoner)"),
    make_character(11, "Albert Einstein", status="Dead"),
    make_character(12, "Alexander", status="Dead"),
    make_character(13, "Alien Googah", status="unknown", species="Alien", gender="unknown", episodes=[ep(31)]),
    make_character(14, "Alien Morty", status="unknown", species="Alien"),
    make_character(15, "Alien Rick", status="unknown", species="Alien"),
    make_character(16, "Amish Cyborg", status="Dead", species="Alien", type="Parasite"),
    make_character(17, "Annie", gender="Female"),
    make_character(18, "Antenna Morty", type="Human with antennae"),
    make_character(19, "Antenna Rick", status="unknown", type="Human with antennae"),
    make_character(20, "Ants in my Eyes Johnson", status="unknown", type="Human with ants in his eyes"),
    make_character(21, "beta-Seven", species="Alien", gender="Genderless", episodes=[]),
    make_character(22, "Rick Sanchez", status="Dead"),
]


def roster_models() -> List[Character]:
    return [Character.model_validate(c) for c in ROSTER]


class FakeResp:
    def __init__(self, status_code: int, payload: Any = None):
        self.status_code = status_code
        self._payload = payload if payload is not None else {}
        self.headers: Dict[str, str] = {}

    def json(self):
        if isinstance(self._payload, Exception):
            raise self._payload
        return self._payload

    def raise_for_status(self):
        if self.status_code >= 400:
            raise httpx.HTTPStatusError("err", request=None, response=None)


class FakeUpstream:
    """In-memory stand-in for the Rick & Morty API behind `httpx.AsyncClient`.

    Serves the listing in pages of ``per_page``, episode resources from
    ``episodes``, and raises a transport error for any URL in ``fail_urls``.
    ``pages_override`` lets a test lie about ``info.pages``.
    """

    def __init__(
        self,
        characters: List[Dict[str, Any]],
        per_page: int = 20,
        episodes: Optional[Dict[str, str]] = None,
        fail_urls: tuple = (),
        pages_override: Optional[int] = None,
    ):
        self.characters = characters
        self.per_page = per_page
        self.episodes = EPISODE_NAMES if episodes is None else episodes
        self.fail_urls = set(fail_urls)
        self.pages_override = pages_override
        self.calls: List[tuple] = []

    def listing_calls(self) -> List[tuple]:
        return [c for c in self.calls if c[0] == LISTING]

    def episode_calls(self) -> List[str]:
        return [c[0] for c in self.calls if "/episode/" in c[0]]

    def respond(self, url: str, params: Optional[Dict[str, Any]]) -> FakeResp:
        self.calls.append((url, dict(params or {})))
        if url in self.fail_urls:
            raise httpx.ConnectError("boom")
        if url.rstrip("/") == API:
            return FakeResp(200, {"characters": LISTING})
        if url == LISTING:
            page = int((params or {}).get("page", 1))
            pages = math.ceil(len(self.characters) / self.per_page)
            if self.pages_override is None and page > max(pages, 1):
                return FakeResp(404, {"error": "There is nothing here"})
            start = (page - 1) * self.per_page
            return FakeResp(
                200,
                {
                    "info": {
                        "count": len(self.characters),
                        "pages": self.pages_override if self.pages_override is not None else pages,
                        "next": f"{LISTING}?page={page + 1}" if page < pages else None,
                        "prev": f"{LISTING}?page={page - 1}" if page > 1 else None,
                    },
                    "results": self.characters[start : start + self.per_page],
                },
            )
        if url in self.episodes:
            return FakeResp(200, {"id": int(url.rsplit("/", 1)[1]), "name": self.episodes[url]})
        return FakeResp(404, {"error": "Episode not found"})

    def client(self, *args, **kwargs):
        return _FakeClient(self)


class _FakeClient:
    def __init__(self, upstream_fake: FakeUpstream):
        self._up = upstream_fake

    async def __aenter__(self):
        return self

    async def __aexit__(self, *a):
        return False

    async def get(self, url, params=None, timeout=None):
        return self._up.respond(url, params)


@pytest.fixture
def fake_upstream(monkeypatch):
    """Install a `FakeUpstream` in place of `httpx.AsyncClient`; returns a factory."""

    def install(characters=None, **kwargs) -> FakeUpstream:
        fake = FakeUpstream(ROSTER if characters is None else characters, **kwargs)
        monkeypatch.setattr(upstream.httpx, "AsyncClient", fake.client)
        return fake

    return install


@pytest.fixture(autouse=True)
def fresh_sessions():
    """Every test starts with an empty session store."""
    session_store.clear()
    yield
    session_store.clear()
