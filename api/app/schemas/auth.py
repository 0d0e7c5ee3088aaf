"""Auth status schemas"""
from pydantic import BaseModel


class ProviderAuthStatus(BaseModel):
    provider: str
    authorized: bool
    login_url: str


class AuthStatusOut(BaseModel):
    spotify: ProviderAuthStatus
    youtube: ProviderAuthStatus
