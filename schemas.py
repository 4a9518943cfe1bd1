"""
Database Schemas for the consultation site

Each Pydantic model below maps to a MongoDB collection:
- User -> "users"
- Booking -> "bookings"
- ContactMessage -> "contacts"

Field-level rules (required fields, digit patterns) live in ``validation.py``;
these models fix the stored document shape so unknown keys are never written.
"""

from datetime import datetime
from typing import Dict, Optional, Type

from pydantic import BaseModel, Field

from validation import BOOKINGS, CONTACTS, USERS


class User(BaseModel):
    """
    User profiles, keyed by the external identity id
    Collection name: "users"
    """
    auth0Id: str = Field(..., description="External identity id")
    firstName: str = Field(..., description="First name")
    lastName: str = Field(..., description="Last name")
    username: str = Field(..., description="Public username, unique across profiles")
    email: str = Field(..., description="Contact email")
    phone: str = Field(..., description="10-digit phone number")
    alternativePhone: Optional[str] = Field(None, description="Optional 10-digit phone number")
    addressLine1: str
    addressLine2: str
    city: str
    state: str
    pincode: str = Field(..., description="6-digit postal code")
    landmark: Optional[str] = None
    profileCompleted: bool = Field(False, description="Derived on every write, never taken from the caller")


class Booking(BaseModel):
    """
    Consultation call bookings
    Collection name: "bookings"
    """
    firstName: str
    lastName: str
    phone: str = Field(..., description="10-digit phone number")
    date: str = Field(..., description="Requested date, as sent by the client")
    timeSlot: str = Field(..., description="Requested time slot, as sent by the client")
    createdAt: Optional[datetime] = Field(None, description="Assigned at write time")


class ContactMessage(BaseModel):
    """
    Messages submitted from the website contact form
    Collection name: "contacts"
    """
    firstName: str
    lastName: str
    email: str
    message: str
    createdAt: Optional[datetime] = Field(None, description="Assigned at write time")


SCHEMAS: Dict[str, Type[BaseModel]] = {
    USERS: User,
    BOOKINGS: Booking,
    CONTACTS: ContactMessage,
}


class MessageResponse(BaseModel):
    message: str


class UsernameAvailability(BaseModel):
    available: bool
    currentUser: bool
