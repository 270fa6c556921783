"""HTTP entry point for chat sessions.

Each ``session_id`` maps to an in-memory :class:`apps.chat_session.ChatSession`
created on first use.  Capability calls run as background tasks on the
server's event loop; the send and summarize endpoints wait for the bot reply
before answering.
"""

from contextlib import asynccontextmanager
from typing import Dict, Optional

from fastapi import FastAPI, HTTPException
from pydantic import BaseModel

from apps.capabilities.environment import CapabilityEnvironment
from apps.chat_session import ChatSession
from lib.config.chat_session_loader import load_chat_session_config
from lib.contracts.conversation import Message
from lib.telemetry.logger import configure_logging, get_logger

_log = get_logger(__name__)

cfg = load_chat_session_config()
sessions: Dict[str, ChatSession] = {}
# None selects the backend from cfg and the environment variables
environment: Optional[CapabilityEnvironment] = None


@asynccontextmanager
async def lifespan(_: FastAPI):
    configure_logging(cfg.log_level)
    yield
    for session_id, session in list(sessions.items()):
        await session.aclose()
        sessions.pop(session_id, None)


app = FastAPI(lifespan=lifespan)


def get_session(session_id: str) -> ChatSession:
    if session_id not in sessions:
        _log.info("opening chat session %s", session_id)
        sessions[session_id] = ChatSession.from_config(cfg, environment)
    return sessions[session_id]


class InputRequest(BaseModel):
    text: str = ""


class LanguagesRequest(BaseModel):
    source_language: Optional[str] = None
    target_language: Optional[str] = None


class CommitResponse(BaseModel):
    committed: bool
    user: Optional[Message] = None
    bot: Optional[Message] = None


@app.get("/languages")
async def languages():
    """Return the supported languages and the default pair."""

    return {
        "languages": [{"code": c, "name": n} for c, n in cfg.languages.items()],
        "default_source": cfg.default_source_language,
        "default_target": cfg.default_target_language,
    }


@app.put("/sessions/{session_id}/input")
async def edit_input(session_id: str, req: InputRequest):
    """Record an edit of the input box and start the capability calls."""

    session = get_session(session_id)
    snapshot = session.edit(req.text)
    return {"sequence": snapshot.sequence, "loading": session.loading}


@app.put("/sessions/{session_id}/languages")
async def set_languages(session_id: str, req: LanguagesRequest):
    session = get_session(session_id)
    try:
        snapshot = session.set_languages(req.source_language, req.target_language)
    except ValueError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    return {
        "sequence": snapshot.sequence,
        "source_language": session.controller.source_language,
        "target_language": session.controller.target_language,
    }


@app.post("/sessions/{session_id}/send", response_model=CommitResponse)
async def send(session_id: str):
    """Commit the input for translation."""

    commit = await get_session(session_id).send()
    if commit is None:
        return CommitResponse(committed=False)
    return CommitResponse(committed=True, user=commit.user, bot=commit.bot)


@app.post("/sessions/{session_id}/summarize", response_model=CommitResponse)
async def summarize(session_id: str):
    """Commit the input for summary."""

    commit = await get_session(session_id).summarize()
    if commit is None:
        return CommitResponse(committed=False)
    return CommitResponse(committed=True, user=commit.user, bot=commit.bot)


@app.get("/sessions/{session_id}/transcript")
async def transcript(session_id: str):
    return get_session(session_id).view()
