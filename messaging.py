"""
messaging.py
WhatsApp-style member messages and workout tips generated with Gemini.
Every call degrades to a fixed fallback text; nothing in the ledger depends on this module.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional

from google import genai

import config
from models import MessageKind

logger = logging.getLogger(__name__)

MISSING_KEY_MESSAGE = "Error: API Key missing."
FALLBACK_MESSAGE = "Hey! Just a reminder about your gym membership. See you soon! 💪"
FALLBACK_TIP = "Consistency is key to progress."
NO_KEY_TIP = "Stay consistent and drink water!"

_client: Optional[genai.Client] = None


def _get_client() -> genai.Client:
    global _client
    if _client is None:
        _client = genai.Client(api_key=config.GEMINI_API_KEY)
    return _client


def build_prompt(member_name: str, expiry_date: datetime, kind: MessageKind) -> str:
    context = {
        MessageKind.REMINDER: f"Their membership expires on {expiry_date:%d %b %Y}. Remind them to renew.",
        MessageKind.WELCOME: "They just joined! Welcome them to the gym family.",
        MessageKind.OFFER: "Offer them a 10% discount if they renew within 24 hours.",
    }[MessageKind(kind)]
    return (
        "Act as a professional and friendly gym manager.\n"
        f'Write a short, engaging WhatsApp message for a member named "{member_name}".\n\n'
        f"Context:\n{context}\n\n"
        "Requirements:\n"
        "- Include emojis.\n"
        "- Keep it under 50 words.\n"
        "- Don't include subject lines or quotes."
    )


def _generate(prompt: str) -> str:
    response = _get_client().models.generate_content(model=config.GEMINI_MODEL, contents=prompt)
    return (response.text or "").strip()


def generate_message(member_name: str, expiry_date: datetime, kind: MessageKind) -> str:
    if not config.GEMINI_API_KEY:
        return MISSING_KEY_MESSAGE
    try:
        return _generate(build_prompt(member_name, expiry_date, kind)) or FALLBACK_MESSAGE
    except Exception:
        logger.exception("Gemini message generation failed for %s", member_name)
        return FALLBACK_MESSAGE


def workout_tip(days_active: int) -> str:
    if not config.GEMINI_API_KEY:
        return NO_KEY_TIP
    prompt = (
        "Give me one single, powerful, and scientific workout tip for someone who has been "
        f"working out for {days_active} days. Keep it short (max 1 sentence)."
    )
    try:
        return _generate(prompt) or FALLBACK_TIP
    except Exception:
        logger.exception("Gemini workout tip failed")
        return FALLBACK_TIP
