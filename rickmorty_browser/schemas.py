"""Pydantic schemas for upstream payloads and API request/response bodies."""

from enum import Enum
from typing import Optional, List, Literal
from pydantic import BaseModel, ConfigDict, Field

PAGE_SIZES = (5, 10, 15, 20, 25, 30)
DEFAULT_PAGE_SIZE = 25
NO_EPISODE = "-"

# Values the listing endpoint uses; "" means "any"
StatusFilter = Literal["", "Alive", "Dead", "unknown"]
GenderFilter = Literal["", "Female", "Male", "Genderless", "unknown"]


class SortOrder(str, Enum):
    none = "none"
    asc = "asc"
    desc = "desc"


class Location(BaseModel):
    model_config = ConfigDict(extra="ignore", frozen=True)

    name: str = ""
    url: str = ""


class Character(BaseModel):
    """A character exactly as the listing endpoint returns it (extra fields dropped)."""

    model_config = ConfigDict(extra="ignore", frozen=True)

    id: int
    name: str
    status: str = "unknown"
    species: str = ""
    type: str = ""
    gender: str = "unknown"
    location: Location = Location()
    image: str = ""
    episode: List[str] = []


class FilterCriteria(BaseModel):
    """Conjunctive filters; an empty value imposes no constraint."""

    name: str = ""
    status: StatusFilter = ""
    gender: GenderFilter = ""
    species: str = ""
    type: str = ""

    def is_active(self) -> bool:
        return any((self.name, self.status, self.gender, self.species, self.type))


class ViewState(BaseModel):
    page: int = 0  # zero-based
    page_size: int = DEFAULT_PAGE_SIZE
    sort: SortOrder = SortOrder.none


class CharacterDetail(BaseModel):
    """Character shown in the detail view, with resolved episode names."""

    id: int
    name: str
    status: str
    species: str
    type: str
    gender: str
    location: str
    image: str
    episode: List[str]
    first_seen_episode: str = NO_EPISODE
    last_seen_episode: str = NO_EPISODE


class CharactersView(BaseModel):
    page: int
    page_number: int
    page_size: int
    sort: SortOrder
    filters: FilterCriteria
    total_count: int
    total_pages: int
    has_prev: bool
    has_next: bool
    loaded_count: int
    alert: Optional[str] = None
    results: List[Character]


class SessionOut(BaseModel):
    session_id: str
    view: CharactersView


class ViewChange(BaseModel):
    page_size: Optional[Literal[5, 10, 15, 20, 25, 30]] = None
    sort: Optional[SortOrder] = None


class PageChange(BaseModel):
    """Either a navigation action or a 1-based page number."""

    action: Optional[Literal["first", "previous", "next", "last"]] = None
    page: Optional[int] = Field(default=None, ge=1)


class HealthcheckOut(BaseModel):
    status: Literal["ok", "degraded"]
    upstream_ok: bool
    active_sessions: int


class ProblemDetail(BaseModel):
    """RFC 7807-style problem response (simplified)."""

    type: str = "about:blank"
    title: str
    status: int
    detail: Optional[str] = None
    instance: Optional[str] = None
