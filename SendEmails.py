#!/usr/bin/env python3
"""
Secret Santa Emailer

- Renders the HTML template once per assignment
- Addresses each email to the giver, or to the giver's proxy actor
- Optionally writes every rendered email to <output_html_dir>/<giver id>.html
- Defaults to DRY-RUN; set "smtp": {"enabled": true, ...} in config.json to send

Template placeholders use ``string.Template`` syntax (``$name`` / ``${name}``).
For each of the roles ``giver``, ``receiver`` and ``actor``:
  ${role}_id, ${role}_first_name, ${role}_last_name, ${role}_public_name,
  ${role}_email, ${role}_address, ${role}_city, ${role}_state, ${role}_zipcode
Values are HTML-escaped. Unknown placeholders are left untouched.
"""

from __future__ import annotations

import html
import logging
import smtplib
import ssl
from email.message import EmailMessage
from email.utils import formataddr
from pathlib import Path
from string import Template
from typing import Dict, List, Sequence

from santa_models import Assignment, NotificationError, SantaConfig, SMTPConfig

_PERSON_FIELDS = ("id", "first_name", "last_name", "public_name", "email")
_ADDRESS_FIELDS = ("address", "city", "state", "zipcode")

# ----------------- Rendering -----------------

def template_context(assignment: Assignment) -> Dict[str, str]:
    context: Dict[str, str] = {}
    roles = (("giver", assignment.giver), ("receiver", assignment.receiver), ("actor", assignment.actor))
    for role, resident in roles:
        for field in _PERSON_FIELDS:
            context[f"{role}_{field}"] = html.escape(getattr(resident.person, field))
        for field in _ADDRESS_FIELDS:
            context[f"{role}_{field}"] = html.escape(getattr(resident.address, field))
    return context

def render_email(assignment: Assignment, template_text: str) -> str:
    return Template(template_text).safe_substitute(template_context(assignment))

def _plain_text(assignment: Assignment) -> str:
    actor = assignment.actor.person
    giver = assignment.giver.person
    receiver = assignment.receiver.person
    lines = [f"Hey {actor.first_name},", ""]
    if actor.id != giver.id:
        lines.append(f"You are helping {giver.public_name} with Secret Santa this year.")
    lines.append(
        f"{giver.public_name} has been assigned to gift to {receiver.public_name} "
        f"({receiver.first_name} {receiver.last_name})."
    )
    lines += ["", "(Please keep this a secret 🤫)", ""]
    return "\n".join(lines)

def make_message(assignment: Assignment, html_body: str, smtp: SMTPConfig) -> EmailMessage:
    actor = assignment.actor.person
    msg = EmailMessage()
    try:
        msg["Subject"] = smtp.subject
        msg["From"] = smtp.sender_email
        msg["To"] = formataddr((actor.public_name, actor.email))
    except ValueError as e:
        raise NotificationError(f'Unable to address email to "{actor.id}": {e}') from e
    msg.set_content(_plain_text(assignment))
    msg.add_alternative(html_body, subtype="html")
    return msg

def write_html_file(directory: Path, assignment: Assignment, html_body: str) -> Path:
    path = directory / f"{assignment.giver.person.id}.html"
    # one flat folder; ids like "a/1" or "../x" would land elsewhere
    if path.resolve().parent != directory.resolve():
        raise NotificationError(f'Unable to write "{path}": id "{assignment.giver.person.id}" is not a plain file name')
    print(f"[INFO] Writing {path}")
    try:
        directory.mkdir(parents=True, exist_ok=True)
        path.write_text(html_body, encoding="utf-8")
    except OSError as e:
        raise NotificationError(f'Unable to write "{path}": {e}') from e
    return path

# ----------------- Delivery -----------------

def send_all(messages: List[EmailMessage], smtp: SMTPConfig) -> None:
    try:
        if smtp.starttls():
            with smtplib.SMTP(smtp.host, smtp.port) as server:
                server.ehlo()
                server.starttls(context=ssl.create_default_context())
                server.ehlo()
                if smtp.user_name:
                    server.login(smtp.user_name, smtp.password)
                for m in messages:
                    server.send_message(m)
        else:
            with smtplib.SMTP_SSL(smtp.host, smtp.port, context=ssl.create_default_context()) as server:
                if smtp.user_name:
                    server.login(smtp.user_name, smtp.password)
                for m in messages:
                    server.send_message(m)
    except (smtplib.SMTPException, OSError) as e:
        raise NotificationError(f"Unable to send email via {smtp.host}:{smtp.port}: {e}") from e

def send_assignments(assignments: Sequence[Assignment], config: SantaConfig, dry_run: bool = False) -> List[EmailMessage]:
    """Render, optionally save, and send (or preview) one email per assignment.

    The dry-run preview lists recipients and subjects only, never receivers.
    Returns the built messages.
    """
    template_path = Path(config.html_template_file)
    try:
        template_text = template_path.read_text(encoding="utf-8")
    except OSError as e:
        raise NotificationError(f'Unable to read email template "{template_path}": {e}') from e

    messages: List[EmailMessage] = []
    for assignment in assignments:
        body = render_email(assignment, template_text)
        messages.append(make_message(assignment, body, config.smtp))
        if config.write_html_files:
            write_html_file(Path(config.output_html_dir), assignment, body)
        logging.debug(
            "Email to %s, for %s -> %s",
            assignment.actor.person.email,
            assignment.giver.person.id,
            assignment.receiver.person.id,
        )

    smtp = config.smtp
    if dry_run or not smtp.enabled:
        print(f"[DRY-RUN] Would send {len(messages)} emails from '{smtp.sender_email}':")
        print("-" * 60)
        for m in messages:
            print(f"TO:   {m['To']}")
            print(f"SUBJ: {m['Subject']}")
        print("-" * 60)
        if not smtp.enabled:
            print('Set "smtp": {"enabled": true} in the config to actually send.')
        return messages

    if not smtp.host:
        raise NotificationError('"smtp.enabled" is true but no "smtp.host" is set in the config.')
    if smtp.user_name and not smtp.password:
        raise NotificationError('"smtp.enabled" is true but no "smtp.password" is set for "smtp.user_name".')

    print(f"[INFO] Sending {len(messages)} emails via {smtp.host}:{smtp.port} ...")
    send_all(messages, smtp)
    print("[OK] All emails sent.")
    return messages
