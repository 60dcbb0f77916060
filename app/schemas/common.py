# Copyright (c) 2025 Alexandre Tavares
# Licensed under the Creative Commons Attribution-NonCommercial 4.0 International (CC BY-NC 4.0)
# See the LICENSE file in the project root for more information.
from __future__ import annotations
from datetime import datetime
from typing import Literal, Optional
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

"""
Schemas compartilhados entre routers.


- `ApiModel`: base com aliases camelCase (entrada aceita camelCase ou snake_case).
- `SafeUser`: usuário sem hash de senha, usado em auth/users e nos enriquecimentos.
"""

UserRole = Literal["admin", "user"]


class ApiModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class SafeUser(ApiModel):
    id: str
    email: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    profile_image_url: Optional[str] = None
    role: UserRole = "user"
    hours_per_day: int = 8
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class MessageOut(ApiModel):
    message: str
