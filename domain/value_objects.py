"""Domain Value Objects"""
from pydantic import BaseModel, Field
from decimal import Decimal
from uuid import UUID
from typing import Optional


class Money(BaseModel):
    """Value Object for monetary amounts"""
    amount: Decimal = Field(ge=0)

    def times(self, quantity: int) -> "Money":
        """Multiply by an integer quantity without leaving decimal arithmetic"""
        return Money(amount=self.amount * Decimal(quantity))

    class Config:
        frozen = True


class PeopleRange(BaseModel):
    """Value Object for a party-size band; max_people None means unbounded"""
    min_people: int
    max_people: Optional[int] = None

    @property
    def upper(self) -> float:
        return float("inf") if self.max_people is None else self.max_people

    def contains(self, people_count: int) -> bool:
        """Check if a party size falls inside the band"""
        return self.min_people <= people_count <= self.upper

    def overlaps(self, other: "PeopleRange") -> bool:
        """Two bands overlap when they share at least one party size"""
        return self.min_people <= other.upper and other.min_people <= self.upper

    def describe(self) -> str:
        if self.max_people is None:
            return f"{self.min_people}+"
        return f"{self.min_people}-{self.max_people}"

    class Config:
        frozen = True


class PriceTier(BaseModel):
    """A tour's unit price for one party-size band"""
    people_range: PeopleRange
    unit_price: Decimal = Field(ge=0)
    price_range_id: Optional[UUID] = None

    class Config:
        frozen = True


class PriceQuote(BaseModel):
    """Result of resolving a party size against a tour's tiers"""
    people_count: int
    unit_price: Money
    total_price: Money
    price_range_id: Optional[UUID] = None

    class Config:
        frozen = True
