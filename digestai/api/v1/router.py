from fastapi import APIRouter

from digestai.api.v1.endpoints import summarize, summaries, usage, users

api_router = APIRouter()

api_router.include_router(summarize.router, prefix="/summarize", tags=["Summarize"])
api_router.include_router(summaries.router, prefix="/summaries", tags=["Summaries"])
api_router.include_router(usage.router, prefix="/usage", tags=["Usage"])
api_router.include_router(users.router, prefix="/users", tags=["Users"])
