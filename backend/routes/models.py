"""Pydantic request/response models for API endpoints."""

from pydantic import BaseModel


class UserTextBody(BaseModel):
    text: str


class ReplyBody(BaseModel):
    character: str


class TranscriptBody(BaseModel):
    transcript: str
