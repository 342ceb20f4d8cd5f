"""
Shared service instances for the API routers
"""

from typing import Optional

from fastapi import HTTPException

from markov_bot.services.bot import MarkovBotService

_bot_service: Optional[MarkovBotService] = None


def set_bot_service(service: Optional[MarkovBotService]):
    """Set (or clear) the bot service used by the routers"""
    global _bot_service
    _bot_service = service


def get_bot_service() -> MarkovBotService:
    """FastAPI dependency returning the bot service"""
    if _bot_service is None:
        raise HTTPException(status_code=503, detail="Markov service not initialized")
    return _bot_service
