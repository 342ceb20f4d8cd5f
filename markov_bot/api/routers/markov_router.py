from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, ConfigDict

from markov_bot.dependencies import get_bot_service
from markov_bot.services.bot import MarkovBotService
from markov_bot.services.chat_import import ChatExportError, parse_chat_export
from markov_bot.services.chat_store import ConcurrentWriteError
from markov_bot.utils.logger import setup_logger

logger = setup_logger(__name__)

router = APIRouter(prefix="/markov", tags=["markov"])


class MessageRequest(BaseModel):
    model_config = ConfigDict(coerce_numbers_to_str=True)

    chat_id: str
    user_id: str
    text: str
    username: Optional[str] = None
    reply_to_message_id: Optional[int] = None
    mention_user_id: Optional[str] = None
    mention_text: Optional[str] = None


class BindPromptRequest(BaseModel):
    model_config = ConfigDict(coerce_numbers_to_str=True)

    chat_id: str
    user_id: str
    message_id: int


class ImportRequest(BaseModel):
    model_config = ConfigDict(coerce_numbers_to_str=True)

    export: dict
    bot_user_ids: List[str] = []


@router.post("/messages")
async def handle_message(req: MessageRequest, service: MarkovBotService = Depends(get_bot_service)):
    try:
        result = service.handle_message(
            chat_id=req.chat_id,
            user_id=req.user_id,
            text=req.text,
            username=req.username,
            reply_to_message_id=req.reply_to_message_id,
            mention_user_id=req.mention_user_id,
            mention_text=req.mention_text,
        )
    except ConcurrentWriteError as e:
        logger.error(f"[Markov] Gave up writing chat {req.chat_id}: {e}")
        raise HTTPException(status_code=409, detail="chat was modified concurrently, retry")
    return {"ok": True, "data": {"reply": result.reply, "trained": result.trained}}


@router.post("/prompts")
async def bind_prompt(req: BindPromptRequest, service: MarkovBotService = Depends(get_bot_service)):
    if not service.prompts.bind(req.chat_id, req.user_id, req.message_id):
        raise HTTPException(status_code=404, detail="no pending prompt for this user")
    return {"ok": True, "data": {"message_id": req.message_id}}


@router.post("/import")
async def import_export(req: ImportRequest, service: MarkovBotService = Depends(get_bot_service)):
    try:
        export = parse_chat_export(req.export)
    except ChatExportError as e:
        raise HTTPException(status_code=400, detail=str(e))
    try:
        imported = service.import_export(export, req.bot_user_ids)
    except ConcurrentWriteError as e:
        logger.error(f"[Import] Gave up writing chat {export.id}: {e}")
        raise HTTPException(status_code=409, detail="chat was modified concurrently, retry")
    return {"ok": True, "data": {"chat_id": str(export.id), "imported": imported}}
