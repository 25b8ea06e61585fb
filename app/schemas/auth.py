from pydantic import BaseModel

class LoginRequest(BaseModel):
    email: str
    password: str

class AccessToken(BaseModel):
    access_token: str
    token_type: str = "bearer"
