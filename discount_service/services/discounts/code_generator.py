# discount_service/services/discounts/code_generator.py
"""
Collision-free voucher code generation.

Both helpers are pure: they take the set of codes already in use (or a
predicate) and never touch the database themselves.
"""

import random
import secrets
import string
from typing import Callable, Iterable, List, Optional

from discount_service.core.exceptions import GenerationExhausted

CODE_ALPHABET = string.digits + string.ascii_uppercase  # base-36


def random_code(
    length: int = 8, prefix: Optional[str] = None, rng: Optional[random.Random] = None
) -> str:
    chooser = rng.choice if rng is not None else secrets.choice
    suffix = "".join(chooser(CODE_ALPHABET) for _ in range(length))
    return f"{prefix}-{suffix}" if prefix else suffix


def generate_unique_codes(
    quantity: int,
    existing: Iterable[str] = (),
    prefix: Optional[str] = None,
    length: int = 8,
    max_attempts_per_code: int = 100,
    rng: Optional[random.Random] = None,
) -> List[str]:
    """
    Draw ``quantity`` codes that are distinct from each other and from
    ``existing``.

    Raises GenerationExhausted if ``max_attempts_per_code`` draws in a row
    all collide.
    """
    taken = {code.upper() for code in existing}
    codes: List[str] = []

    while len(codes) < quantity:
        for _ in range(max_attempts_per_code):
            candidate = random_code(length=length, prefix=prefix, rng=rng)
            if candidate not in taken:
                taken.add(candidate)
                codes.append(candidate)
                break
        else:
            raise GenerationExhausted(
                "Could not generate unique code",
                details={"generated": len(codes), "requested": quantity},
            )

    return codes


def next_copy_code(
    code: str,
    is_taken: Callable[[str], bool],
    max_attempts: int = 100,
    max_length: Optional[int] = None,
) -> str:
    """
    First free code of ``CODE_COPY``, ``CODE_COPY1``, ``CODE_COPY2``, ...

    With ``max_length`` the original code is cut short so that code and
    suffix together fit.
    """
    for counter in range(max_attempts):
        suffix = f"_COPY{counter or ''}"
        base = code if max_length is None else code[: max(max_length - len(suffix), 0)]
        candidate = f"{base}{suffix}"
        if not is_taken(candidate):
            return candidate
    raise GenerationExhausted(
        "Could not generate unique code", details={"code": code}
    )
