from pydantic import BaseModel, Field

from noc2go.models.user import RoleEnum


class UserLogin(BaseModel):
    user: str = Field(min_length=1, max_length=100)
    password: str


class PasswordChange(BaseModel):
    current_password: str
    new_password: str = Field(min_length=8, max_length=128)
    repeat_password: str


class UserOut(BaseModel):
    name: str
    role: RoleEnum

    model_config = {"from_attributes": True}


class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"
