from __future__ import annotations

from typing import Any

REPORT_CONTROL_ID = "btn_report_problem"
CONTACT_CONTROL_ID = "btn_talk_staff"
PANEL_CONTROL_IDS = frozenset({REPORT_CONTROL_ID, CONTACT_CONTROL_ID})

REPORT_MODAL_ID = "modal_report_problem"
CONTACT_MODAL_ID = "modal_talk_staff"

REPORT_TITLE_FIELD = "rp_title"
REPORT_DETAILS_FIELD = "rp_details"
CONTACT_MESSAGE_FIELD = "ts_message"

TITLE_MAX_LENGTH = 90
DETAILS_MAX_LENGTH = 1500
MESSAGE_MAX_LENGTH = 1500

ACTION_ROW = 1
BUTTON = 2
TEXT_INPUT = 4

BUTTON_PRIMARY = 1
BUTTON_DANGER = 4

TEXT_INPUT_SHORT = 1
TEXT_INPUT_PARAGRAPH = 2

PANEL_COLOR = 0x2B2D31
ENVELOPE_COLOR = 0x5865F2

EPHEMERAL = 1 << 6

# Interaction callback types.
CALLBACK_MESSAGE = 4
CALLBACK_DEFERRED_MESSAGE = 5
CALLBACK_MODAL = 9


def panel_embed() -> dict[str, Any]:
    return {
        "title": "🎫 Support & Reports",
        "description": "\n".join(
            [
                "Use the buttons below:",
                "• **Report Server Problem** → creates a **Forum post**.",
                "• **Talk to Staff/Admin** → sends your message "
                "**directly to Admin's DMs**.",
            ]
        ),
        "color": PANEL_COLOR,
    }


def panel_components() -> list[dict[str, Any]]:
    return [
        {
            "type": ACTION_ROW,
            "components": [
                {
                    "type": BUTTON,
                    "custom_id": REPORT_CONTROL_ID,
                    "label": "Report Server Problem",
                    "style": BUTTON_DANGER,
                },
                {
                    "type": BUTTON,
                    "custom_id": CONTACT_CONTROL_ID,
                    "label": "Talk to Staff/Admin",
                    "style": BUTTON_PRIMARY,
                },
            ],
        }
    ]


def _text_input(
    custom_id: str, label: str, *, style: int, max_length: int
) -> dict[str, Any]:
    return {
        "type": ACTION_ROW,
        "components": [
            {
                "type": TEXT_INPUT,
                "custom_id": custom_id,
                "label": label,
                "style": style,
                "required": True,
                "max_length": max_length,
            }
        ],
    }


def report_modal() -> dict[str, Any]:
    return {
        "custom_id": REPORT_MODAL_ID,
        "title": "Report Server Problem",
        "components": [
            _text_input(
                REPORT_TITLE_FIELD,
                "Short Title",
                style=TEXT_INPUT_SHORT,
                max_length=TITLE_MAX_LENGTH,
            ),
            _text_input(
                REPORT_DETAILS_FIELD,
                "Describe the problem",
                style=TEXT_INPUT_PARAGRAPH,
                max_length=DETAILS_MAX_LENGTH,
            ),
        ],
    }


def contact_modal() -> dict[str, Any]:
    return {
        "custom_id": CONTACT_MODAL_ID,
        "title": "Message Admin / Staff",
        "components": [
            _text_input(
                CONTACT_MESSAGE_FIELD,
                "Your message",
                style=TEXT_INPUT_PARAGRAPH,
                max_length=MESSAGE_MAX_LENGTH,
            )
        ],
    }


MODALS_BY_CONTROL = {
    REPORT_CONTROL_ID: report_modal,
    CONTACT_CONTROL_ID: contact_modal,
}
