# checkout/domain/owners.py
import secrets
from dataclasses import dataclass


@dataclass(frozen=True)
class Guest:
    session_id: str


@dataclass(frozen=True)
class Customer:
    customer_id: int


CartOwner = Guest | Customer


def owner_key(owner: CartOwner) -> tuple[str, str]:
    """(owner_type, owner_id) as stored in the cart table."""
    match owner:
        case Guest(session_id=session_id):
            return "guest", session_id
        case Customer(customer_id=customer_id):
            return "customer", str(customer_id)
    raise TypeError(f"Unknown cart owner: {owner!r}")


def new_session_id() -> str:
    return secrets.token_hex(32)


def describe(owner: CartOwner) -> str:
    """Short label for logs; guest session ids are truncated."""
    owner_type, owner_id = owner_key(owner)
    if owner_type == "guest":
        owner_id = owner_id[:8]
    return f"{owner_type}:{owner_id}"
