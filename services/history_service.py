"""
Room state / price history service.

Builds the snapshot the frontend polls so every participant renders the
same authoritative race state straight from the server.
"""
from typing import List, Optional

from models import Room, RaceStatus
from schemas import (
    CryptoAsset,
    PlayerResponse,
    PriceSampleData,
    RoomStateResponse,
    WinnerResponse,
)


def get_price_history(room: Room) -> List[PriceSampleData]:
    """Samples in append order (seq)."""
    return [PriceSampleData.model_validate(s) for s in room.samples]


def build_room_state(room: Room, since_version: Optional[int] = None) -> RoomStateResponse:
    """
    Full snapshot of a room, or a bare "unchanged" marker when the caller
    already has `since_version`.
    """
    if since_version is not None and since_version == room.state_version:
        return RoomStateResponse(changed=False, code=room.code, state_version=room.state_version)

    samples = get_price_history(room)

    winner = None
    if room.status == RaceStatus.ENDED and room.winner_name is not None:
        winner = WinnerResponse(
            name=room.winner_name,
            prediction=room.winner_prediction,
            final_price=room.final_price,
        )

    return RoomStateResponse(
        changed=True,
        code=room.code,
        state_version=room.state_version,
        status=room.status,
        started=room.started,
        asset=CryptoAsset(
            id=room.asset_id,
            name=room.asset_name,
            symbol=room.asset_symbol,
            image=room.asset_image,
        ),
        players=[PlayerResponse.model_validate(p) for p in room.players],
        start_time=room.start_time,
        time_left=room.time_left,
        initial_price=samples[0].price if samples else None,
        current_price=samples[-1].price if samples else None,
        winner=winner,
        last_error=room.last_error,
        samples=samples,
    )
