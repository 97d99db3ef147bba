from __future__ import annotations

from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import Customer, Sale
from ..validation import (
    ValidationError,
    NotFoundError,
    ConflictError,
    normalize_dni,
    normalize_email,
    normalize_phone,
    require_text,
    optional_text,
)


def normalize_customer_input(data) -> dict:
    """Validate a customer payload. The DNI is reduced to digits."""
    if not isinstance(data, dict):
        raise ValidationError("customer is required", details={"field": "customer"})

    normalized = {
        "dni": normalize_dni(data.get("dni")),
        "first_name": require_text(data.get("first_name"), "first_name", min_length=2),
        "last_name": require_text(data.get("last_name"), "last_name", min_length=2),
    }
    if data.get("phone"):
        normalized["phone"] = normalize_phone(data.get("phone")) or None
    if data.get("email"):
        normalized["email"] = normalize_email(data.get("email")) or None
    if data.get("nationality"):
        normalized["nationality"] = require_text(data.get("nationality"), "nationality", max_length=50)
    if data.get("address"):
        normalized["address"] = optional_text(data.get("address"), "address", max_length=200)
    return normalized


CONTACT_FIELDS = ("phone", "email", "nationality", "address")


def resolve_or_create_customer(data) -> Customer:
    """
    Find the customer by DNI or create it. Existing customers get their name
    and contact data refreshed when any contact field is supplied.

    Flushes, never commits: runs inside the caller's transaction.
    """
    fields = normalize_customer_input(data)

    customer = db.session.query(Customer).filter_by(dni=fields["dni"]).first()
    if customer is None:
        customer = Customer(
            dni=fields["dni"],
            first_name=fields["first_name"],
            last_name=fields["last_name"],
            phone=fields.get("phone"),
            email=fields.get("email"),
            nationality=fields.get("nationality") or "Peruana",
            address=fields.get("address"),
        )
        db.session.add(customer)
        db.session.flush()
        return customer

    if any(fields.get(key) for key in CONTACT_FIELDS):
        customer.first_name = fields["first_name"]
        customer.last_name = fields["last_name"]
        for key in CONTACT_FIELDS:
            if fields.get(key):
                setattr(customer, key, fields[key])
        db.session.flush()
    return customer


def get_customer(customer_id: int) -> Customer:
    customer = db.session.get(Customer, customer_id)
    if not customer:
        raise NotFoundError("Customer not found", details={"customer_id": customer_id})
    return customer


def list_customers(
    *,
    search: str | None = None,
    nationality: str | None = None,
    page: int = 1,
    per_page: int = 10,
) -> tuple[list[tuple[Customer, int]], int]:
    """
    Paginated customer listing, newest first, each with its sale count.

    search matches DNI, first name or last name; "Carlos Vasquez" also
    matches first name "Carlos" together with last name "Vasquez".
    """
    query = db.session.query(Customer)
    if search and search.strip():
        term = search.strip()
        like = f"%{term}%"
        conditions = [
            Customer.dni.ilike(like),
            Customer.first_name.ilike(like),
            Customer.last_name.ilike(like),
        ]
        first, _, rest = term.partition(" ")
        if rest.strip():
            conditions.append(db.and_(
                Customer.first_name.ilike(f"%{first}%"),
                Customer.last_name.ilike(f"%{rest.strip()}%"),
            ))
        query = query.filter(db.or_(*conditions))
    if nationality:
        query = query.filter(Customer.nationality == nationality.strip())

    total = query.count()
    customers = (
        query.order_by(Customer.created_at.desc(), Customer.id.desc())
        .offset((page - 1) * per_page)
        .limit(per_page)
        .all()
    )

    counts = {}
    if customers:
        counts = dict(
            db.session.query(Sale.customer_id, db.func.count(Sale.id))
            .filter(Sale.customer_id.in_([c.id for c in customers]))
            .group_by(Sale.customer_id)
            .all()
        )
    return [(c, counts.get(c.id, 0)) for c in customers], total


def update_customer(customer_id: int, data) -> Customer:
    """
    Replace a customer's data. dni, first_name and last_name are required;
    contact fields present in the payload are overwritten (blank clears them).
    Another customer holding the new DNI is a conflict.
    """
    customer = get_customer(customer_id)
    fields = normalize_customer_input(data)

    clash = (
        db.session.query(Customer.id)
        .filter(Customer.dni == fields["dni"], Customer.id != customer.id)
        .first()
    )
    if clash:
        raise ConflictError("Another customer already has this DNI", code="DUPLICATE_DNI", details={"dni": fields["dni"]})

    customer.dni = fields["dni"]
    customer.first_name = fields["first_name"]
    customer.last_name = fields["last_name"]
    for key in CONTACT_FIELDS:
        if key not in data:
            continue
        if key == "nationality":
            customer.nationality = fields.get("nationality") or "Peruana"
        else:
            setattr(customer, key, fields.get(key))

    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ConflictError("Another customer already has this DNI", code="DUPLICATE_DNI", details={"dni": fields["dni"]})
    return customer


def find_customer_by_dni(dni) -> tuple[Customer, list[Sale]]:
    """Customer plus its 5 most recent sales."""
    dni = normalize_dni(dni)
    customer = db.session.query(Customer).filter_by(dni=dni).first()
    if not customer:
        raise NotFoundError("Customer not found", details={"dni": dni})
    recent = (
        db.session.query(Sale)
        .filter(Sale.customer_id == customer.id)
        .order_by(Sale.created_at.desc(), Sale.id.desc())
        .limit(5)
        .all()
    )
    return customer, recent


def delete_customer(customer_id: int) -> None:
    customer = db.session.get(Customer, customer_id)
    if not customer:
        raise NotFoundError("Customer not found", details={"customer_id": customer_id})
    sales = db.session.query(Sale.id).filter(Sale.customer_id == customer.id).count()
    if sales:
        raise ConflictError(
            f"Customer has {sales} associated sale(s) and cannot be deleted",
            code="CUSTOMER_HAS_SALES",
            details={"sales": sales},
        )
    db.session.delete(customer)
    db.session.commit()
