"""
Keys router - operator management of the Gemini API key pool.

Endpoints:
- GET    /keys          - List keys (masked) with usage statistics
- POST   /keys          - Add a key
- DELETE /keys/{index}  - Remove a key
- POST   /keys/rotate   - Switch to the next key

Mutating endpoints are sync so they wait for the key ring lock in the
threadpool instead of on the event loop.
"""

from fastapi import APIRouter, HTTPException, status

from examnotebook.llm import KeyRing

from ..deps import get_keyring, keyring_lock, logger, save_keyring
from ..schemas import KeyAddRequest, KeyInfo, KeyListResponse


router = APIRouter(prefix="/keys", tags=["Keys"])


def _key_list(ring: KeyRing) -> KeyListResponse:
    return KeyListResponse(
        keys=[
            KeyInfo(
                index=index,
                masked_key=slot.masked_key,
                current=index == ring.current_index,
                request_count=slot.stats.request_count,
                error_count=slot.stats.error_count,
                last_used_at=slot.stats.last_used_at,
                health=slot.stats.health,
                last_error=slot.stats.last_error,
            )
            for index, slot in enumerate(ring.slots)
        ],
        current_index=ring.current_index,
        fallback_enabled=ring.fallback_enabled,
    )


@router.get("", response_model=KeyListResponse)
async def list_keys():
    """List configured keys and their statistics."""
    return _key_list(get_keyring())


@router.post("", response_model=KeyListResponse, status_code=status.HTTP_201_CREATED)
def add_key(request: KeyAddRequest):
    """Append a key to the rotation."""
    key = request.key.strip()
    if not key:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Key must not be blank",
        )

    with keyring_lock:
        ring = get_keyring()
        ring.add_credential(key)
        save_keyring()
        return _key_list(ring)


@router.delete("/{index}", response_model=KeyListResponse)
def remove_key(index: int):
    """Remove the key at index."""
    with keyring_lock:
        ring = get_keyring()
        if not 0 <= index < len(ring):
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail=f"No key at index {index}",
            )
        ring.remove_credential(index)
        save_keyring()
        return _key_list(ring)


@router.post("/rotate", response_model=KeyListResponse)
def rotate_key():
    """Make the next key current."""
    with keyring_lock:
        ring = get_keyring()
        if ring.rotate() is None:
            logger.info("Rotation skipped: fewer than 2 keys configured")
        else:
            save_keyring()
        return _key_list(ring)
