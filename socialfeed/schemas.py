from pydantic import BaseModel, ConfigDict, Field


# --- Auth ---

class LoginInput(BaseModel):
    username: str = Field(min_length=1, max_length=100)
    password: str = Field(min_length=1)


class SignupInput(LoginInput):
    name: str = Field(min_length=1, max_length=150)


# --- User ---

class UserResponse(BaseModel):
    id: str
    username: str
    name: str
    model_config = ConfigDict(from_attributes=True)


class SelfUserResponse(UserResponse):
    pass


# --- Post ---

class CreatePostInput(BaseModel):
    content: str = Field(min_length=1)


class PostResponse(BaseModel):
    id: str
    content: str
    author: UserResponse | None = None
    liked: bool = False
