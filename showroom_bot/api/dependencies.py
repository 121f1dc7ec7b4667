"""FastAPI dependencies."""

from fastapi import HTTPException, Request

from showroom_bot.app_state import AppState


def get_app_state(request: Request) -> AppState:
    """The object graph built in the lifespan handler."""
    state = getattr(request.app.state, "bot", None)
    if state is None:
        raise HTTPException(status_code=503, detail="Bot is starting up")
    return state
