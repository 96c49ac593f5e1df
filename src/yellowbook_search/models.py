from pydantic import BaseModel, ConfigDict, Field
from typing import TypeAlias, Literal, Any

from .storage.base import BusinessRecord

MatchedBy: TypeAlias = Literal["semantic", "keyword"]


class BusinessHit(BaseModel):
    """A business returned by search, with its relevance on the path's own scale"""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    description: str
    categories: tuple[str, ...]
    city: str
    state: str
    phone: str
    email: str
    website: str | None = None
    relevance_score: float = Field(
        description="Cosine similarity for semantic hits, normalized lexical score for keyword hits"
    )
    matched_by: MatchedBy

    @classmethod
    def from_record(
        cls, record: BusinessRecord, relevance_score: float, matched_by: MatchedBy
    ) -> "BusinessHit":
        return cls(
            id=record.id,
            name=record.name,
            description=record.description,
            categories=tuple(record.categories),
            city=record.city,
            state=record.state,
            phone=record.phone,
            email=record.email,
            website=record.website,
            relevance_score=relevance_score,
            matched_by=matched_by,
        )


class SearchResult(BaseModel):
    """Answer plus ranked businesses for a natural-language question"""

    model_config = ConfigDict(frozen=True)

    answer: str
    businesses: tuple[BusinessHit, ...]
    cached: bool = False

    def as_cache_hit(self) -> "SearchResult":
        return self.model_copy(update={"cached": True})


class SearchRequest(BaseModel):
    """Request body for the AI search endpoint"""

    question: str = Field(description="Free-text question")
    city: str | None = Field(default=None, description="Optional city filter")


class Address(BaseModel):
    street: str = Field(min_length=1)
    city: str = Field(min_length=1)
    state: str = Field(min_length=1)
    postal_code: str = Field(min_length=1, alias="postalCode")
    country: str = Field(min_length=1)

    model_config = ConfigDict(populate_by_name=True)


class Location(BaseModel):
    lat: float
    lng: float


class BusinessCreate(BaseModel):
    """Payload for creating a directory entry"""

    name: str = Field(min_length=1)
    description: str = Field(min_length=1)
    phone: str = Field(min_length=1)
    email: str = Field(min_length=3, pattern=r"^[^@\s]+@[^@\s]+$")
    website: str | None = None
    address: Address
    categories: list[str] = Field(min_length=1)
    location: Location

    def to_fields(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "phone": self.phone,
            "email": self.email,
            "website": self.website,
            "street": self.address.street,
            "city": self.address.city,
            "state": self.address.state,
            "postal_code": self.address.postal_code,
            "country": self.address.country,
            "categories": self.categories,
            "latitude": self.location.lat,
            "longitude": self.location.lng,
        }


class BusinessOut(BaseModel):
    """Created directory entry as returned by the API"""

    id: str
    name: str
    description: str
    phone: str
    email: str
    website: str | None = None
    address: Address
    categories: tuple[str, ...]
    location: Location
    has_embedding: bool = False

    @classmethod
    def from_record(cls, record: BusinessRecord) -> "BusinessOut":
        return cls(
            id=record.id,
            name=record.name,
            description=record.description,
            phone=record.phone,
            email=record.email,
            website=record.website,
            address=Address(
                street=record.street,
                city=record.city,
                state=record.state,
                postal_code=record.postal_code,
                country=record.country,
            ),
            categories=tuple(record.categories),
            location=Location(lat=record.latitude, lng=record.longitude),
            has_embedding=record.has_embedding,
        )
