"""Client records, always scoped to the owning user."""
import logging
from typing import List

from sqlalchemy.orm import Session

from invoicely.core.exceptions import ConflictError, NotFoundError, ValidationError
from invoicely.models.client import Client
from invoicely.models.invoice import Invoice
from invoicely.schemas.client import ClientCreate, ClientUpdate

logger = logging.getLogger(__name__)


def list_clients(db: Session, user_id: int) -> List[Client]:
    return db.query(Client).filter(Client.user_id == user_id).order_by(Client.name).all()


def get_client(db: Session, user_id: int, client_id: int) -> Client:
    client = db.query(Client).filter(Client.id == client_id, Client.user_id == user_id).first()
    if not client:
        raise NotFoundError("Client")
    return client


def create_client(db: Session, user_id: int, data: ClientCreate) -> Client:
    name = data.name.strip()
    if not name:
        raise ValidationError("Client name is required")
    client = Client(
        user_id=user_id,
        name=name,
        email=str(data.email),
        phone=data.phone,
        address=data.address,
    )
    db.add(client)
    db.commit()
    db.refresh(client)
    logger.info(f"[Clients] user={user_id} created client {client.id}")
    return client


def update_client(db: Session, user_id: int, client_id: int, data: ClientUpdate) -> Client:
    client = get_client(db, user_id, client_id)
    if data.name is not None:
        if not data.name.strip():
            raise ValidationError("Client name is required")
        client.name = data.name.strip()
    if data.email is not None:
        client.email = str(data.email)
    if data.phone is not None:
        client.phone = data.phone
    if data.address is not None:
        client.address = data.address
    db.commit()
    db.refresh(client)
    return client


def delete_client(db: Session, user_id: int, client_id: int) -> None:
    client = get_client(db, user_id, client_id)
    in_use = db.query(Invoice.id).filter(Invoice.client_id == client.id).first()
    if in_use:
        raise ConflictError("Client has invoices and cannot be deleted")
    db.delete(client)
    db.commit()
    logger.info(f"[Clients] user={user_id} deleted client {client_id}")
