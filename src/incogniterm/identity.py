"""Fake identity generation.

Names and cities come from a ``Faker`` instance the caller owns. A seeded
instance yields the same identity every time, and the module-level
``random`` state is never touched.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

from faker import Faker

LOCALE = "en_US"

_NOT_NAME = re.compile(r"[^a-z]+")
_NOT_HOST = re.compile(r"[^a-z0-9]+")


@dataclass(frozen=True)
class FakeIdentity:
    """The username and hostname shown inside the session."""

    user: str
    host: str


def new_faker(seed: int | None = None) -> Faker:
    """A Faker with its own random source, seeded when ``seed`` is given."""
    fake = Faker(LOCALE)
    fake.seed_instance(seed)
    return fake


def _name_part(value: str) -> str:
    return _NOT_NAME.sub("", value.lower())


def generate_identity(
    fake: Faker,
    user: str | None = None,
    host: str | None = None,
) -> FakeIdentity:
    """Build a fake identity, keeping any pinned ``user`` / ``host``.

    Users look like ``ana_popescu``; hosts look like
    ``bucharest-node-4821`` (node number in 1000..9999).
    """
    if user is None:
        user = f"{_name_part(fake.first_name())}_{_name_part(fake.last_name())}"
    if host is None:
        city = _NOT_HOST.sub("-", fake.city().lower()).strip("-")
        host = f"{city}-node-{fake.random_int(1000, 9999)}"
    return FakeIdentity(user=user, host=host)
