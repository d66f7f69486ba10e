from fastapi import APIRouter, Depends
from typing import Dict, Any

from chatrelay.providers.relay import StreamingRelay, get_relay

router = APIRouter()


@router.get("/providers")
async def get_providers(relay: StreamingRelay = Depends(get_relay)) -> Dict[str, Any]:
    """List the registered providers the relay will accept."""
    return {"providers": [p.model_dump() for p in relay.registry.describe()]}
