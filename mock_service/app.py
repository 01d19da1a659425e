import asyncio

from fastapi import FastAPI, HTTPException
from fastapi.responses import PlainTextResponse
from pydantic import BaseModel

app = FastAPI(title="Mock Service")


class EchoRequest(BaseModel):
    latency_ms: float = 0
    fail: bool = False
    size: int = 16


@app.get("/api/demo")
async def demo():
    return {"message": "ok"}


@app.post("/api/echo", response_class=PlainTextResponse)
async def echo(req: EchoRequest):
    if req.latency_ms > 0:
        await asyncio.sleep(req.latency_ms / 1000)
    if req.fail:
        raise HTTPException(status_code=500, detail="simulated failure")
    return "x" * max(0, req.size)


# Run with: uvicorn mock_service.app:app --port 8001 --reload
