"""Clients: ownership-scoped CRUD."""
from typing import List

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from invoicely.api.deps import get_current_user_id, get_db
from invoicely.core.audit import AuditLog
from invoicely.schemas.client import ClientCreate, ClientResponse, ClientUpdate
from invoicely.services import client_service

router = APIRouter()


@router.get("", response_model=List[ClientResponse])
def list_clients(db: Session = Depends(get_db), user_id: int = Depends(get_current_user_id)):
    return [ClientResponse.model_validate(c) for c in client_service.list_clients(db, user_id)]


@router.post("", response_model=ClientResponse, status_code=status.HTTP_201_CREATED)
def create_client(data: ClientCreate, db: Session = Depends(get_db), user_id: int = Depends(get_current_user_id)):
    client = client_service.create_client(db, user_id, data)
    AuditLog.log_action("create", "client", client.id, user_id)
    return ClientResponse.model_validate(client)


@router.get("/{client_id}", response_model=ClientResponse)
def get_client(client_id: int, db: Session = Depends(get_db), user_id: int = Depends(get_current_user_id)):
    return ClientResponse.model_validate(client_service.get_client(db, user_id, client_id))


@router.put("/{client_id}", response_model=ClientResponse)
def update_client(
    client_id: int,
    data: ClientUpdate,
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id),
):
    client = client_service.update_client(db, user_id, client_id, data)
    AuditLog.log_action("update", "client", client.id, user_id, changes=data.model_dump(exclude_none=True))
    return ClientResponse.model_validate(client)


@router.delete("/{client_id}")
def delete_client(client_id: int, db: Session = Depends(get_db), user_id: int = Depends(get_current_user_id)):
    client_service.delete_client(db, user_id, client_id)
    AuditLog.log_action("delete", "client", client_id, user_id)
    return {"message": "Client deleted successfully", "id": client_id}
