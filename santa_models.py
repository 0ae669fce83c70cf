"""Schemas shared by the matcher and the emailer.

The data file and the configuration file are both JSON and are loaded into
immutable Pydantic models. Missing string fields load as empty strings so the
data-file validator (not the JSON loader) is the one that reports them.

``Resident`` and ``Assignment`` are derived views built by the matcher; they
are plain frozen dataclasses.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field


# ---------------------------
# Errors
# ---------------------------

class SecretSantaError(Exception):
    """Base class for every error the CLI reports and exits on."""


class ConfigError(SecretSantaError):
    pass


class DataFileError(SecretSantaError):
    pass


class AssignmentExhaustedError(SecretSantaError):
    pass


class NotificationError(SecretSantaError):
    pass


# ---------------------------
# Data file
# ---------------------------

class Person(BaseModel):
    """A participant.

    Parameters
    ----------
    id : str
        Unique identifier across the whole data file.
    actor_id : str, default=""
        Optional proxy actor: the ``id`` of another person who receives the
        email on this person's behalf (e.g. a parent for a small child).
    first_name, last_name, public_name, email : str
        Contact details, all required.

    Examples
    --------
    >>> Person(id="ann", first_name="Ann", last_name="Lee", public_name="Annie", email="ann@example.com")
    Person(id='ann', actor_id='', first_name='Ann', last_name='Lee', public_name='Annie', email='ann@example.com')
    """

    id: str = ""
    actor_id: str = ""
    first_name: str = ""
    last_name: str = ""
    public_name: str = ""
    email: str = ""

    model_config = ConfigDict(frozen=True, extra="ignore")


class Address(BaseModel):
    """A household and the people living there, in file order."""

    address: str = ""
    city: str = ""
    state: str = ""
    zipcode: str = ""
    residents: Tuple[Person, ...] = ()

    model_config = ConfigDict(frozen=True, extra="ignore")


@dataclass(frozen=True)
class Resident:
    person: Person
    address: Address


@dataclass(frozen=True)
class Assignment:
    """``giver`` buys for ``receiver``; ``actor`` is the one who gets emailed."""

    giver: Resident
    receiver: Resident
    actor: Resident


# ---------------------------
# Configuration
# ---------------------------

class RulesConfig(BaseModel):
    allow_same_residence_exchange: bool = Field(
        default=False, description="Allow people at the same address to draw each other."
    )

    model_config = ConfigDict(frozen=True, extra="ignore")


class SMTPConfig(BaseModel):
    """SMTP transport settings.

    ``enabled`` defaults to false, which makes every run a dry run.
    ``use_starttls`` defaults to true on port 587 and to implicit TLS otherwise.
    """

    enabled: bool = False
    host: str = ""
    port: int = 587
    user_name: str = ""
    password: str = ""
    sender_email: str = "Secret Santa <santa@example.com>"
    subject: str = "Your Secret Santa assignment"
    use_starttls: Optional[bool] = None

    model_config = ConfigDict(frozen=True, extra="ignore")

    def starttls(self) -> bool:
        if self.use_starttls is None:
            return self.port == 587
        return self.use_starttls


class SantaConfig(BaseModel):
    """Top-level configuration file.

    Relative ``data_file``, ``html_template_file`` and ``output_html_dir``
    paths are resolved against the directory of the configuration file by the
    loader.
    """

    data_file: str = Field(default="data.json", description="JSON list of addresses.")
    html_template_file: str = Field(default="template.html", description="Email body template.")
    enable_debug_messages: bool = False
    write_html_files: bool = False
    output_html_dir: str = "output_html"
    rules: RulesConfig = Field(default_factory=RulesConfig)
    smtp: SMTPConfig = Field(default_factory=SMTPConfig)

    model_config = ConfigDict(frozen=True, extra="ignore")
