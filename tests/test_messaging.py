from datetime import datetime

import messaging
from models import MessageKind

EXPIRY = datetime(2024, 6, 30)


def test_missing_api_key(monkeypatch):
    monkeypatch.setattr(messaging.config, "GEMINI_API_KEY", None)
    assert messaging.generate_message("John", EXPIRY, MessageKind.REMINDER) == messaging.MISSING_KEY_MESSAGE
    assert messaging.workout_tip(10) == messaging.NO_KEY_TIP


def test_failure_falls_back(monkeypatch):
    monkeypatch.setattr(messaging.config, "GEMINI_API_KEY", "key")

    def boom(prompt):
        raise RuntimeError("service unavailable")

    monkeypatch.setattr(messaging, "_generate", boom)
    assert messaging.generate_message("John", EXPIRY, MessageKind.OFFER) == messaging.FALLBACK_MESSAGE
    assert messaging.workout_tip(10) == messaging.FALLBACK_TIP


def test_generated_text_is_returned(monkeypatch):
    monkeypatch.setattr(messaging.config, "GEMINI_API_KEY", "key")
    prompts = []

    def fake(prompt):
        prompts.append(prompt)
        return "Renew today, John! 💪"

    monkeypatch.setattr(messaging, "_generate", fake)
    assert messaging.generate_message("John", EXPIRY, MessageKind.REMINDER) == "Renew today, John! 💪"
    assert '"John"' in prompts[0]
    assert "30 Jun 2024" in prompts[0]


def test_prompt_per_kind():
    assert "Welcome them" in messaging.build_prompt("Mona", EXPIRY, MessageKind.WELCOME)
    assert "10% discount" in messaging.build_prompt("Mona", EXPIRY, "OFFER")
