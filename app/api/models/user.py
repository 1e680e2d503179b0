# app/api/models/user.py

from typing import Optional

from pydantic import BaseModel, ConfigDict, EmailStr


class UserOut(BaseModel):
    """
    Usuario autenticado (el 'sub' del JWT es el dueno de los recordatorios).
    """
    model_config = ConfigDict(from_attributes=True)

    id: str
    email: Optional[EmailStr] = None
