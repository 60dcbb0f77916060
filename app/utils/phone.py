# Copyright (c) 2025 Alexandre Tavares
# Licensed under the Creative Commons Attribution-NonCommercial 4.0 International (CC BY-NC 4.0)
# See the LICENSE file in the project root for more information.
from __future__ import annotations
import re
from typing import Literal, Optional

"""
Formatação de telefone por `phone_format` do cliente CRM.


- us: (123) 456-7890  |  +1 (234) 567-8900
- international: +55 119 876 5432  |  123 456 7890
- eu: +33 1 23 45 67 89  |  1 23 45 67 89
- none: devolve o valor original.
Quando os dígitos não batem com o padrão, o valor original volta intacto.
"""

PhoneFormat = Literal["us", "international", "eu", "none"]

_NON_DIGITS = re.compile(r"\D")


def strip_non_digits(phone: str) -> str:
    return _NON_DIGITS.sub("", phone)


def format_phone(phone: Optional[str], fmt: Optional[str] = "us") -> str:
    if not phone:
        return ""
    digits = strip_non_digits(phone)
    if not digits:
        return phone

    fmt = fmt or "us"
    n = len(digits)

    if fmt == "us":
        if n == 10:
            return f"({digits[:3]}) {digits[3:6]}-{digits[6:]}"
        if n == 11 and digits[0] == "1":
            return f"+1 ({digits[1:4]}) {digits[4:7]}-{digits[7:]}"
        return phone

    if fmt == "international":
        if n < 10:
            return phone
        if n > 10:
            cc, rest = digits[:-10], digits[-10:]
            return f"+{cc} {rest[:3]} {rest[3:6]} {rest[6:]}"
        return f"{digits[:3]} {digits[3:6]} {digits[6:]}"

    if fmt == "eu":
        if n < 9:
            return phone
        if n > 9:
            cc, rest = digits[:-9], digits[-9:]
            return f"+{cc} {rest[:1]} {rest[1:3]} {rest[3:5]} {rest[5:7]} {rest[7:]}"
        return f"{digits[:1]} {digits[1:3]} {digits[3:5]} {digits[5:7]} {digits[7:]}"

    return phone
