from pydantic import BaseModel

# Schema for the user object returned by the dependency
class UserData(BaseModel):
    username: str
    id: int
    email: str
    role: str = "user"
