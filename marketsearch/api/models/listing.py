"""Listing response models"""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from marketsearch.models import Brand, City, ListingHit, ProductModel


class CamelModel(BaseModel):
    """Base model serialised with camelCase keys"""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


class BrandSummary(CamelModel):
    id: str
    name: str
    logo: Optional[str] = None

    @classmethod
    def from_domain(cls, brand: Brand) -> 'BrandSummary':
        return cls(id=brand.id, name=brand.name, logo=brand.logo)


class ModelSummary(CamelModel):
    id: str
    name: str
    brand_id: str
    image: Optional[str] = None

    @classmethod
    def from_domain(cls, model: ProductModel) -> 'ModelSummary':
        return cls(id=model.id, name=model.name, brand_id=model.brand_id, image=model.image)


class CitySummary(CamelModel):
    id: str
    name: str
    display_name: Optional[str] = None
    country: Optional[str] = None
    country_code: str
    region: Optional[str] = None
    latitude: float
    longitude: float

    @classmethod
    def from_domain(cls, city: City) -> 'CitySummary':
        return cls(
            id=city.id,
            name=city.name,
            display_name=city.display_name or f"{city.name}, {city.country or city.country_code}",
            country=city.country,
            country_code=city.country_code,
            region=city.region,
            latitude=city.latitude,
            longitude=city.longitude,
        )


class ListingResponse(CamelModel):
    """API response model for listings"""
    id: str
    title: str
    description: str
    price: float
    currency: str
    condition: str
    type: str
    images: List[str]
    is_verified: bool
    views: int
    seller_id: str
    published_at: Optional[datetime] = None
    brand: Optional[BrandSummary] = None
    model: Optional[ModelSummary] = None
    city: Optional[CitySummary] = None
    distance_km: Optional[float] = None

    @classmethod
    def from_hit(cls, hit: ListingHit) -> 'ListingResponse':
        listing = hit.listing
        return cls(
            id=listing.id,
            title=listing.title,
            description=listing.description,
            price=float(listing.price),
            currency=listing.currency,
            condition=listing.condition.value,
            type=listing.listing_type.value,
            images=list(listing.images),
            is_verified=listing.is_verified,
            views=listing.views,
            seller_id=listing.seller_id,
            published_at=listing.published_at,
            brand=BrandSummary.from_domain(hit.brand) if hit.brand else None,
            model=ModelSummary.from_domain(hit.model) if hit.model else None,
            city=CitySummary.from_domain(hit.city) if hit.city else None,
            distance_km=round(hit.distance_km, 2) if hit.distance_km is not None else None,
        )
