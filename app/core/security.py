# Copyright (c) 2025 Alexandre Tavares
# Licensed under the Creative Commons Attribution-NonCommercial 4.0 International (CC BY-NC 4.0)
# See the LICENSE file in the project root for more information.
from __future__ import annotations
import secrets
import bcrypt

"""
Senhas e códigos aleatórios.


- `hash_password()` / `verify_password()` com bcrypt (12 rounds).
- `MAX_PASSWORD_BYTES`: limite do bcrypt, validado no cadastro.
- `new_invite_code()` gera 32 hex chars para links de convite de time.
"""

SALT_ROUNDS = 12
# bcrypt só considera os primeiros 72 bytes; o 5.x rejeita senhas maiores
MAX_PASSWORD_BYTES = 72


def hash_password(password: str) -> str:
    hashed = bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt(rounds=SALT_ROUNDS))
    return hashed.decode("utf-8")


def verify_password(password: str, hashed: str) -> bool:
    if not hashed:
        return False
    try:
        return bcrypt.checkpw(password.encode("utf-8"), hashed.encode("utf-8"))
    except ValueError:
        # hash malformado no banco
        return False


def new_invite_code() -> str:
    return secrets.token_hex(16)
