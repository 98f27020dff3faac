from uuid import UUID
from fastapi import APIRouter, Depends, status
from typing import List

from invgen.models.user import User
from invgen.repositories import DataStore
from invgen.schemas.client import ClientResponse, ClientCreate, ClientUpdate
from invgen.services.client_service import ClientService
from invgen.utils.dependencies import get_current_user, get_store

router = APIRouter(prefix="/clients", tags=["clients"])

@router.get("", response_model=List[ClientResponse])
async def list_clients(
    current_user: User = Depends(get_current_user),
    store: DataStore = Depends(get_store),
) -> List[ClientResponse]:
    """List all clients for a user."""
    client_service = ClientService(store)
    clients = await client_service.list_clients(current_user.id)
    return clients

@router.get("/{client_id}", response_model=ClientResponse)
async def get_client(
    client_id: UUID,
    current_user: User = Depends(get_current_user),
    store: DataStore = Depends(get_store),
) -> ClientResponse:
    """Get client by id."""
    client_service = ClientService(store)
    client = await client_service.get_client(user_id=current_user.id, client_id=client_id)
    return client

@router.post("", response_model=ClientResponse, status_code=status.HTTP_201_CREATED)
async def create_client(
    client_data: ClientCreate,
    current_user: User = Depends(get_current_user),
    store: DataStore = Depends(get_store),
) -> ClientResponse:
    """Create new client."""
    client_service = ClientService(store)
    client = await client_service.create_client(current_user.id, client_data)
    return client

@router.put("/{client_id}", response_model=ClientResponse)
async def update_client(
    client_id: UUID,
    client_data: ClientUpdate,
    current_user: User = Depends(get_current_user),
    store: DataStore = Depends(get_store),
) -> ClientResponse:
    """Update client."""
    client_service = ClientService(store)
    client = await client_service.update_client(current_user.id, client_id, client_data)
    return client

@router.delete("/{client_id}")
async def delete_client(
    client_id: UUID,
    current_user: User = Depends(get_current_user),
    store: DataStore = Depends(get_store),
) -> dict:
    """Delete a client without invoices."""
    client_service = ClientService(store)
    await client_service.delete_client(current_user.id, client_id)
    return {"message": "Client deleted successfully"}
