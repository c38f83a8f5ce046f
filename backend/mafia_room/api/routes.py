from fastapi import APIRouter, HTTPException, Request, status
from ..core.errors import RoomNotFound

router = APIRouter()

@router.get("/health")
async def health(request: Request):
    return {"status": "ok", "rooms": len(request.app.state.store)}

@router.get("/rooms")
async def list_rooms(request: Request):
    return {"rooms": request.app.state.store.summaries()}

@router.get("/rooms/{room_id}")
async def get_room(room_id: str, request: Request):
    try:
        room = request.app.state.store.get(room_id)
    except RoomNotFound:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Room not found")
    return room.summary()
