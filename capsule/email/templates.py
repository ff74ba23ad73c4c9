"""
Email templates for time capsule deliveries.

Rendering depends only on the note's content, name and creation date, so
the same note always renders to the same message.
"""

import html
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from capsule.database.models import Note


@dataclass(frozen=True)
class CapsuleEmail:
    """A rendered message ready for a transport."""
    to: str
    subject: str
    text: str
    html: str


def format_date(value: datetime) -> str:
    """January 5, 2025"""
    return f"{value.strftime('%B')} {value.day}, {value.year}"


def render_capsule_email(note: Note) -> CapsuleEmail:
    """
    Render the one-year delivery message for a note.

    Raises ValueError if the note has no email address.
    """
    if not note.email:
        raise ValueError(f"Note {note.id} has no email address")

    written_on = format_date(note.created_at)
    subject = f"Your time capsule from {written_on}"

    return CapsuleEmail(
        to=note.email,
        subject=subject,
        text=_render_text(note.content, note.name, written_on),
        html=_render_html(note.content, note.name, written_on),
    )


def _greeting(name: Optional[str]) -> str:
    return f"Hi {name}," if name else "Hi there,"


def _render_text(content: str, name: Optional[str], written_on: str) -> str:
    return (
        f"{_greeting(name)}\n\n"
        f"One year ago, on {written_on}, you wrote this note to your future self:\n\n"
        f"{content}\n\n"
        "-- Time Capsule Diary\n"
    )


def _render_html(content: str, name: Optional[str], written_on: str) -> str:
    paragraphs = content.split('\n\n')
    formatted_note = ''.join([
        f'<p style="margin: 0 0 18px 0; font-size: 17px; line-height: 1.7; color: #2d2d2d;">'
        f'{html.escape(p.strip()).replace(chr(10), "<br>")}</p>'
        for p in paragraphs if p.strip()
    ])

    return f'''
    <!DOCTYPE html>
    <html>
    <head>
      <meta charset="utf-8">
      <meta name="viewport" content="width=device-width, initial-scale=1.0">
    </head>
    <body style="margin: 0; padding: 0; font-family: Georgia, serif; background: #f8f9fa;">
      <div style="max-width: 640px; margin: 0 auto; padding: 40px 20px;">
        <!-- Header -->
        <div style="text-align: center; margin-bottom: 32px;">
          <p style="margin: 0 0 8px 0; font-size: 13px; color: #6c757d; text-transform: uppercase; letter-spacing: 2px; font-weight: 600;">
            Time Capsule
          </p>
          <h1 style="color: #1a1a1a; margin: 0; font-size: 32px; font-weight: 700;">
            {html.escape(_greeting(name))}
          </h1>
        </div>

        <p style="font-size: 16px; color: #495057;">
          One year ago, on {written_on}, you wrote this note to your future self:
        </p>

        <!-- Note Content -->
        <div style="background: white; border-radius: 16px; padding: 40px 36px; margin: 24px 0; border-left: 4px solid #764ba2;">
          {formatted_note}
        </div>

        <p style="text-align: center; color: #adb5bd; font-size: 12px; margin-top: 30px;">
          Time Capsule Diary - Notes Delivered a Year Later
        </p>
      </div>
    </body>
    </html>
    '''
