"""Chat API – run one conversational turn through the pipeline."""

from __future__ import annotations

from typing import Annotated, Any

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from bizzi.pipeline.orchestrator import ConversationPipeline
from bizzi.pipeline.types import ChatRequest, InvalidRequest

router = APIRouter()


def get_pipeline(request: Request) -> ConversationPipeline:
    return request.app.state.pipeline


PipelineDep = Annotated[ConversationPipeline, Depends(get_pipeline)]


class ActionOut(BaseModel):
    model_config = {"extra": "allow"}

    kind: str
    label: str


class EnvelopeOut(BaseModel):
    response_text: str
    actions: list[ActionOut]
    follow_up_prompt: str = ""
    meta: dict[str, Any] = {}


class IntentInfo(BaseModel):
    key: str
    category: str
    module: str
    label: str
    recipe: bool
    cache: bool
    post_process: bool
    style_family: str


@router.post("/pipeline", response_model=EnvelopeOut)
async def chat_pipeline(body: ChatRequest, pipeline: PipelineDep) -> Any:
    try:
        envelope = await pipeline.run(body)
    except InvalidRequest as e:
        return JSONResponse(status_code=400, content={"error": e.code})
    return envelope.to_dict()


@router.get("/intents", response_model=list[IntentInfo])
async def list_intents(pipeline: PipelineDep) -> list[IntentInfo]:
    return [IntentInfo(**d.describe()) for d in pipeline.registry]
